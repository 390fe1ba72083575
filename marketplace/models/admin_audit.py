"""
Admin audit log model for tracking sensitive admin actions.
"""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, BigIdType, JSONType


class AdminAuditLog(Base):
    """
    Audit trail for sensitive admin actions.

    Tracks account blocking/unblocking and other critical operations.
    """
    __tablename__ = 'admin_audit_logs'

    id = Column(BigIdType, primary_key=True, autoincrement=True)

    # Who performed the action
    admin_user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False)

    # What action was performed
    action = Column(String(100), nullable=False)

    # Target account (if applicable)
    target_user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=True, index=True)

    # Additional details in JSON format
    details = Column(JSONType, nullable=True)

    # Network information
    ip_address = Column(String(45), nullable=True)

    # When it happened
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    admin_user = relationship('AppUser', foreign_keys=[admin_user_id])
    target_user = relationship('AppUser', foreign_keys=[target_user_id])

    def __repr__(self):
        return f'<AdminAuditLog id={self.id} action={self.action} admin_id={self.admin_user_id}>'

    @staticmethod
    def log_action(admin_user_id, action, target_user_id=None, details=None, ip_address=None):
        """
        Helper method to create audit log entries.

        Args:
            admin_user_id: ID of the admin user performing the action
            action: Action type (e.g., 'BLOCK_USER')
            target_user_id: Optional account ID the action targets
            details: Optional dict with additional context
            ip_address: Optional IP address of the admin user

        Returns:
            AdminAuditLog instance (not committed)
        """
        return AdminAuditLog(
            admin_user_id=admin_user_id,
            action=action,
            target_user_id=target_user_id,
            details=details,
            ip_address=ip_address
        )

    def to_dict(self):
        return {
            'id': self.id,
            'admin_user_id': self.admin_user_id,
            'action': self.action,
            'target_user_id': self.target_user_id,
            'details': self.details,
            'ip_address': self.ip_address,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


# Common action types (for reference)
class AuditAction:
    """Constants for common audit actions."""
    BLOCK_USER = 'BLOCK_USER'
    UNBLOCK_USER = 'UNBLOCK_USER'
    RESEND_CREDENTIALS = 'RESEND_CREDENTIALS'
    REFUND_PAYMENT = 'REFUND_PAYMENT'
