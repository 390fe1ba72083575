"""Enrollment model - course access granted to a user."""
from sqlalchemy import Column, BigInteger, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigIdType


class Enrollment(Base):
    """Course access; a user is enrolled in a course at most once."""

    __tablename__ = 'enrollment'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(BigInteger, ForeignKey('course.id'), nullable=False)
    checkout_id = Column(BigInteger, ForeignKey('checkout.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    user = relationship('AppUser', back_populates='enrollments')
    course = relationship('Course')

    __table_args__ = (
        UniqueConstraint('user_id', 'course_id', name='uq_enrollment_user_course'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'course_id': self.course_id,
            'course_title': self.course.title if self.course else None,
            'checkout_id': self.checkout_id,
            'enrolled_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Enrollment(user_id={self.user_id}, course_id={self.course_id})>"
