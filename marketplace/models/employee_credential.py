"""EmployeeCredential model - generated login for a company-purchased seat."""
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigIdType


class EmployeeCredential(Base):
    """
    One per purchased seat.

    Only the hash is stored; the plaintext lives in memory until it is emailed.
    Rows with ``is_sent = False`` are pending notifications drained by the
    credential dispatcher.
    """

    __tablename__ = 'employee_credential'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    purchase_item_id = Column(BigInteger, ForeignKey('company_purchase_item.id', ondelete='CASCADE'), nullable=False)
    company_id = Column(BigInteger, ForeignKey('company.id'), nullable=False, index=True)
    course_id = Column(BigInteger, ForeignKey('course.id'), nullable=False)
    user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=True)
    login_email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    is_sent = Column(Boolean, nullable=False, default=False, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    purchase_item = relationship('CompanyPurchaseItem', back_populates='credentials')
    company = relationship('Company', back_populates='credentials')
    course = relationship('Course')
    user = relationship('AppUser')

    def to_dict(self):
        return {
            'id': self.id,
            'course_id': self.course_id,
            'course_title': self.course.title if self.course else None,
            'login_email': self.login_email,
            'is_sent': self.is_sent,
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
        }

    def __repr__(self):
        return f"<EmployeeCredential(id={self.id}, login_email='{self.login_email}', is_sent={self.is_sent})>"
