"""Payment model - provider-side settlement of a checkout."""
import enum
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigIdType


class PaymentStatus(str, enum.Enum):
    """Payment status as reported by the provider."""
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    REQUIRES_CAPTURE = 'REQUIRES_CAPTURE'


class Payment(Base):
    """
    One row per checkout.

    ``checkout_id`` is unique so repeated webhook deliveries upsert the same row.
    """

    __tablename__ = 'payment'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    checkout_id = Column(BigInteger, ForeignKey('checkout.id', ondelete='CASCADE'), nullable=False, unique=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=True)
    company_id = Column(BigInteger, ForeignKey('company.id'), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(10), nullable=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    # Stripe identifiers
    checkout_session_id = Column(String(255), nullable=True)
    payment_intent_id = Column(String(255), nullable=True, index=True)
    stripe_customer_id = Column(String(255), nullable=True)
    payment_method_id = Column(String(255), nullable=True)
    payment_method = Column(String(50), nullable=True)
    receipt_url = Column(String(1024), nullable=True)

    # Refunds (partial refunds accumulate; status stays COMPLETED)
    refunded_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default='0')
    refund_id = Column(String(255), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    payment_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    checkout = relationship('Checkout', back_populates='payment')

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'FAILED', 'REQUIRES_CAPTURE')",
            name='check_payment_status'
        ),
        CheckConstraint('refunded_amount >= 0', name='check_payment_refunded_amount'),
    )

    @property
    def is_completed(self):
        return self.status == PaymentStatus.COMPLETED.value

    @property
    def refundable_amount(self):
        return (self.amount or 0) - (self.refunded_amount or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'checkout_id': self.checkout_id,
            'amount': str(self.amount),
            'currency': self.currency,
            'status': self.status,
            'payment_intent_id': self.payment_intent_id,
            'payment_method': self.payment_method,
            'receipt_url': self.receipt_url,
            'refunded_amount': str(self.refunded_amount or 0),
            'payment_date': self.payment_date.isoformat() if self.payment_date else None,
        }

    def __repr__(self):
        return f'<Payment id={self.id} checkout_id={self.checkout_id} amount={self.amount} status={self.status}>'
