"""Checkout and CheckoutItem models."""
import enum
from sqlalchemy import Column, BigInteger, String, Numeric, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigIdType


class CheckoutStatus(str, enum.Enum):
    """Checkout lifecycle; the only transition is PENDING -> PAID."""
    PENDING = 'PENDING'
    PAID = 'PAID'


class OrderStatus(str, enum.Enum):
    """Seller-side progress of a paid checkout line (study material delivery)."""
    PROCESSING = 'PROCESSING'
    SHIPPED = 'SHIPPED'
    DELIVERED = 'DELIVERED'
    CANCELLED = 'CANCELLED'


class Checkout(Base):
    """
    Snapshot of a cart awaiting (or having received) payment.

    ``total_amount`` is computed once at creation and never recomputed.
    """

    __tablename__ = 'checkout'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    cart_id = Column(BigInteger, ForeignKey('cart.id', ondelete='SET NULL'), nullable=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=True, index=True)
    company_id = Column(BigInteger, ForeignKey('company.id'), nullable=True, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=CheckoutStatus.PENDING.value)
    # Settling payment reference: Payment row id for card payments, receipt number for offline ones
    payment_id = Column(String(64), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    cart = relationship('Cart')
    user = relationship('AppUser', foreign_keys=[user_id])
    company = relationship('Company', foreign_keys=[company_id])
    items = relationship('CheckoutItem', back_populates='checkout', cascade='all, delete-orphan')
    payment = relationship('Payment', back_populates='checkout', uselist=False, cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint("status IN ('PENDING', 'PAID')", name='check_checkout_status'),
    )

    @property
    def is_paid(self):
        return self.status == CheckoutStatus.PAID.value

    @property
    def owner_id(self):
        """Id of whichever owner is set (None when ambiguous or missing)."""
        if (self.user_id is None) == (self.company_id is None):
            return None
        return self.user_id if self.user_id is not None else self.company_id

    @property
    def owner_type(self):
        if self.user_id is not None and self.company_id is None:
            return 'USER'
        if self.company_id is not None and self.user_id is None:
            return 'COMPANY'
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'company_id': self.company_id,
            'total_amount': str(self.total_amount),
            'status': self.status,
            'payment_id': self.payment_id,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
            'items': [item.to_dict() for item in self.items],
            'payment': self.payment.to_dict() if self.payment else None,
        }

    def __repr__(self):
        return f"<Checkout(id={self.id}, total={self.total_amount}, status={self.status})>"


class CheckoutItem(Base):
    """Frozen copy of a cart line at checkout time."""

    __tablename__ = 'checkout_item'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    checkout_id = Column(BigInteger, ForeignKey('checkout.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(BigInteger, ForeignKey('course.id'), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(5, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)
    line_total = Column(Numeric(12, 2), nullable=False)
    order_status = Column(String(20), nullable=False, default=OrderStatus.PROCESSING.value,
                          server_default=OrderStatus.PROCESSING.value)
    status_updated_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    checkout = relationship('Checkout', back_populates='items')
    course = relationship('Course')

    __table_args__ = (
        CheckConstraint(
            "order_status IN ('PROCESSING', 'SHIPPED', 'DELIVERED', 'CANCELLED')",
            name='check_checkout_item_order_status'
        ),
    )

    def to_dict(self):
        return {
            'course_id': self.course_id,
            'title': self.course.title if self.course else None,
            'unit_price': str(self.unit_price),
            'discount': str(self.discount),
            'quantity': self.quantity,
            'line_total': str(self.line_total),
            'order_status': self.order_status,
        }

    def __repr__(self):
        return f"<CheckoutItem(checkout_id={self.checkout_id}, course_id={self.course_id})>"
