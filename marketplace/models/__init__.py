"""Models package - exports all SQLAlchemy models."""
# Accounts
from marketplace.models.app_user import AppUser, UserRole, UserStatus
from marketplace.models.company import Company

# Catalog
from marketplace.models.course import Course, ShippingOption

# Checkout workflow
from marketplace.models.cart import Cart, CartItem
from marketplace.models.checkout import Checkout, CheckoutItem, CheckoutStatus, OrderStatus
from marketplace.models.payment import Payment, PaymentStatus

# Fulfillment
from marketplace.models.enrollment import Enrollment
from marketplace.models.company_purchase import CompanyPurchase, CompanyPurchaseItem
from marketplace.models.employee_credential import EmployeeCredential

# Admin
from marketplace.models.admin_audit import AdminAuditLog, AuditAction

__all__ = [
    'AppUser', 'UserRole', 'UserStatus', 'Company',
    'Course', 'ShippingOption',
    'Cart', 'CartItem', 'Checkout', 'CheckoutItem', 'CheckoutStatus', 'OrderStatus',
    'Payment', 'PaymentStatus',
    'Enrollment', 'CompanyPurchase', 'CompanyPurchaseItem', 'EmployeeCredential',
    'AdminAuditLog', 'AuditAction',
]
