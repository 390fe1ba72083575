"""Course catalog request schemas."""
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class CourseCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(alias='courseTitle', min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    discount: Decimal = Field(default=Decimal('0'), ge=0, le=100, max_digits=5, decimal_places=2)


class CourseUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, alias='courseTitle', min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    discount: Optional[Decimal] = Field(default=None, ge=0, le=100, max_digits=5, decimal_places=2)
    active: Optional[bool] = None


class ShippingOptionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    carrier: str = Field(min_length=1, max_length=100)
    country_code: str = Field(alias='countryCode', min_length=2, max_length=2)
    cost: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    delivery_min: Optional[int] = Field(default=None, alias='deliveryMin', ge=0)
    delivery_max: Optional[int] = Field(default=None, alias='deliveryMax', ge=0)
    is_default: bool = Field(default=False, alias='isDefault')
