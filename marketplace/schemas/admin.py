"""Admin request schemas."""
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field


class UserStatusRequest(BaseModel):
    status: Literal['ACTIVE', 'BLOCKED']
    reason: Optional[str] = Field(default=None, max_length=500)


class RefundRequest(BaseModel):
    """Omit amount to refund whatever is left on the payment."""
    amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    reason: Optional[Literal['duplicate', 'fraudulent', 'requested_by_customer']] = None
