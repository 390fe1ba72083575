"""Owner references: a cart or checkout belongs to one buyer or one company."""
from typing import NamedTuple, Optional

from marketplace.exceptions import InvalidArgumentError, NotFoundError
from marketplace.models import Company, UserRole


class OwnerRef(NamedTuple):
    user_id: Optional[int] = None
    company_id: Optional[int] = None

    @property
    def is_company(self) -> bool:
        return self.company_id is not None

    @property
    def owner_id(self) -> Optional[int]:
        return self.company_id if self.company_id is not None else self.user_id

    @property
    def owner_type(self) -> str:
        return 'COMPANY' if self.is_company else 'USER'

    def validate(self):
        """Raise InvalidArgumentError unless exactly one id is set."""
        if self.user_id is None and self.company_id is None:
            raise InvalidArgumentError('User ID or Company ID is required')
        if self.user_id is not None and self.company_id is not None:
            raise InvalidArgumentError('A cart belongs to a user or a company, not both')
        return self


def resolve_owner(session, principal) -> OwnerRef:
    """Map the authenticated principal to the owner of its cart and checkouts."""
    if principal.role == UserRole.COMPANY.value:
        company = session.query(Company).filter_by(user_id=principal.id).first()
        if not company:
            raise NotFoundError('Company profile not found')
        return OwnerRef(company_id=company.id)
    return OwnerRef(user_id=principal.id)
