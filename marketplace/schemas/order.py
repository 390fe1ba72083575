"""Order request schemas."""
from typing import Literal
from pydantic import BaseModel


class OrderStatusRequest(BaseModel):
    status: Literal['PROCESSING', 'SHIPPED', 'DELIVERED', 'CANCELLED']
