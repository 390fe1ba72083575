"""Company bulk purchase models."""
from sqlalchemy import Column, BigInteger, Numeric, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigIdType


class CompanyPurchase(Base):
    """Purchase record created when a company checkout is paid."""

    __tablename__ = 'company_purchase'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    company_id = Column(BigInteger, ForeignKey('company.id'), nullable=False, index=True)
    checkout_id = Column(BigInteger, ForeignKey('checkout.id'), nullable=False, unique=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    company = relationship('Company')
    items = relationship('CompanyPurchaseItem', back_populates='purchase', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<CompanyPurchase(id={self.id}, company_id={self.company_id}, checkout_id={self.checkout_id})>"


class CompanyPurchaseItem(Base):
    """Purchase line: one course, one or more seats."""

    __tablename__ = 'company_purchase_item'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    purchase_id = Column(BigInteger, ForeignKey('company_purchase.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(BigInteger, ForeignKey('course.id'), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    # Relationships
    purchase = relationship('CompanyPurchase', back_populates='items')
    course = relationship('Course')
    credentials = relationship('EmployeeCredential', back_populates='purchase_item')

    def __repr__(self):
        return f"<CompanyPurchaseItem(purchase_id={self.purchase_id}, course_id={self.course_id})>"
