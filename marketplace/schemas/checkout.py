"""Cart, checkout and payment request schemas."""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class AddCartItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    course_id: int = Field(alias='courseId', gt=0)
    quantity: int = Field(default=1, ge=1, le=1000)


class BeginPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    checkout_id: int = Field(alias='checkoutId', gt=0)
    shipping_option_id: Optional[int] = Field(default=None, alias='shippingOptionId', gt=0)


class MarkPaidRequest(BaseModel):
    """Manual (cash/offline) settlement of a checkout."""
    model_config = ConfigDict(populate_by_name=True)

    checkout_id: int = Field(alias='checkoutId', gt=0)
    payment_id: str = Field(alias='paymentId', min_length=1, max_length=64)


class CreateCheckoutRequest(BaseModel):
    """Checkout selection: the whole cart unless ``courseIds`` narrows it."""
    model_config = ConfigDict(populate_by_name=True)

    all: bool = True
    course_ids: Optional[List[int]] = Field(default=None, alias='courseIds', min_length=1)

    @model_validator(mode='after')
    def _require_selection(self):
        if not self.all and not self.course_ids:
            raise ValueError('Provide either all=true or specific courseIds')
        return self