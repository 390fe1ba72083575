"""Course and shipping option models."""
from sqlalchemy import Column, BigInteger, String, Text, Boolean, Numeric, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigIdType
from marketplace.utils.money import apply_discount


class Course(Base):
    """Course - the purchasable item of the marketplace."""

    __tablename__ = 'course'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    seller_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(5, 2), nullable=False, default=0, server_default='0')  # percent
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    seller = relationship('AppUser', foreign_keys=[seller_id])
    shipping_options = relationship('ShippingOption', back_populates='course', cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint('price >= 0', name='check_course_price'),
        CheckConstraint('discount >= 0 AND discount <= 100', name='check_course_discount'),
    )

    @property
    def discounted_price(self):
        """Current unit price after the course discount."""
        return apply_discount(self.price, self.discount or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'seller_id': self.seller_id,
            'title': self.title,
            'description': self.description,
            'price': str(self.price),
            'discount': str(self.discount or 0),
            'discounted_price': str(self.discounted_price),
            'active': self.active,
            'shipping_options': [o.to_dict() for o in self.shipping_options],
        }

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}', price={self.price})>"


class ShippingOption(Base):
    """Delivery option for the physical material bundled with a course."""

    __tablename__ = 'shipping_option'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    course_id = Column(BigInteger, ForeignKey('course.id', ondelete='CASCADE'), nullable=False, index=True)
    carrier = Column(String(100), nullable=False)
    country_code = Column(String(2), nullable=False)
    cost = Column(Numeric(10, 2), nullable=False, default=0)
    delivery_min = Column(Integer, nullable=True)  # days
    delivery_max = Column(Integer, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)

    course = relationship('Course', back_populates='shipping_options')

    def to_dict(self):
        return {
            'id': self.id,
            'course_id': self.course_id,
            'carrier': self.carrier,
            'country_code': self.country_code,
            'cost': str(self.cost),
            'delivery_min': self.delivery_min,
            'delivery_max': self.delivery_max,
            'is_default': self.is_default,
        }

    def __repr__(self):
        return f"<ShippingOption(id={self.id}, course_id={self.course_id}, carrier='{self.carrier}')>"
