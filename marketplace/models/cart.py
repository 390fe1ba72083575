"""Cart and CartItem models."""
from sqlalchemy import Column, BigInteger, Integer, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigIdType


class Cart(Base):
    """
    Active cart of one buyer or one company.

    Exactly one of ``user_id``/``company_id`` is set; each owner has at most
    one cart, created lazily on first add.
    """

    __tablename__ = 'cart'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id', ondelete='CASCADE'), nullable=True, unique=True)
    company_id = Column(BigInteger, ForeignKey('company.id', ondelete='CASCADE'), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship('CartItem', back_populates='cart', cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint(
            'NOT (user_id IS NOT NULL AND company_id IS NOT NULL)',
            name='check_cart_single_owner'
        ),
    )

    @property
    def is_company_cart(self):
        return self.company_id is not None

    def __repr__(self):
        return f"<Cart(id={self.id}, user_id={self.user_id}, company_id={self.company_id})>"


class CartItem(Base):
    """Cart line; a course appears at most once per cart."""

    __tablename__ = 'cart_item'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    cart_id = Column(BigInteger, ForeignKey('cart.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(BigInteger, ForeignKey('course.id'), nullable=False)
    # Seats; only company carts may hold more than one
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    cart = relationship('Cart', back_populates='items')
    course = relationship('Course')

    __table_args__ = (
        UniqueConstraint('cart_id', 'course_id', name='uq_cart_item_course'),
        CheckConstraint('quantity > 0', name='check_cart_item_quantity'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'course_id': self.course_id,
            'quantity': self.quantity,
            'course': {
                'id': self.course.id,
                'title': self.course.title,
                'price': str(self.course.price),
                'discount': str(self.course.discount or 0),
                'discounted_price': str(self.course.discounted_price),
            } if self.course else None,
        }

    def __repr__(self):
        return f"<CartItem(cart_id={self.cart_id}, course_id={self.course_id}, qty={self.quantity})>"
