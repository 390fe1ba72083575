"""Company model - organisation buying course seats for its employees."""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigIdType


class Company(Base):
    """Company profile attached to a COMPANY-role account."""

    __tablename__ = 'company'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id', ondelete='CASCADE'), nullable=False, unique=True)
    company_name = Column(String(200), nullable=False)
    # Contact address; its domain is reused for generated employee logins
    company_email = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    owner = relationship('AppUser', back_populates='company')
    credentials = relationship('EmployeeCredential', back_populates='company')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'company_name': self.company_name,
            'company_email': self.company_email,
        }

    def __repr__(self):
        return f"<Company(id={self.id}, name='{self.company_name}')>"
