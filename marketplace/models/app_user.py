"""AppUser model - platform accounts (students, companies, sellers, employees, admins)."""
import enum
from sqlalchemy import Column, BigInteger, String, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from marketplace.database import Base, BigIdType


class UserRole(enum.Enum):
    """Platform roles carried by the bearer token."""
    SUPER_ADMIN = 'SUPER_ADMIN'
    ADMIN = 'ADMIN'
    SELLER = 'SELLER'
    STUDENT = 'STUDENT'
    COMPANY = 'COMPANY'
    EMPLOYEE = 'EMPLOYEE'


class UserStatus(enum.Enum):
    """Account status toggled by admins."""
    ACTIVE = 'ACTIVE'
    BLOCKED = 'BLOCKED'


class AppUser(Base):
    """AppUser model - platform users with local authentication."""

    __tablename__ = 'app_user'

    id = Column(BigIdType, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    full_name = Column(String(200), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value)
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)

    # Stripe customer, created lazily on first hosted checkout
    stripe_customer_id = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    company = relationship('Company', back_populates='owner', uselist=False)
    enrollments = relationship('Enrollment', back_populates='user')

    __table_args__ = (
        CheckConstraint("status IN ('ACTIVE', 'BLOCKED')", name='check_user_status'),
    )

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_blocked(self):
        return self.status == UserStatus.BLOCKED.value

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'status': self.status,
        }

    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}', role='{self.role}')>"
