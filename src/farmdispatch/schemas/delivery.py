"""Delivery workflow request schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.domain import Address, Section
from ..services.delivery.session import LoadingAction


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OptimizeRouteRequest(_CamelModel):
    order_ids: Optional[List[str]] = Field(
        default=None,
        alias="orderIds",
        description="Subset of session orders to route. Defaults to every delivery order.",
    )
    persist: bool = Field(default=False, description="Write the route sheet and loading list to the data root.")


class TrackLoadingRequest(_CamelModel):
    order_number: Optional[str] = Field(default=None, alias="orderNumber")
    order_id: Optional[str] = Field(default=None, alias="orderId")
    section: Section
    action: LoadingAction = LoadingAction.LOAD

    @model_validator(mode="after")
    def _require_order_reference(self) -> "TrackLoadingRequest":
        if not (self.order_number or self.order_id):
            raise ValueError("Order number and section are required")
        return self


class ScanRequest(_CamelModel):
    code: str = Field(..., min_length=1, description="Scanned barcode or typed order number.")


class Keystroke(_CamelModel):
    key: str = Field(..., min_length=1)
    at: float = Field(..., ge=0, description="Keystroke time in milliseconds.")


class ScannerKeysRequest(_CamelModel):
    keys: List[Keystroke] = Field(default_factory=list)
    now: Optional[float] = Field(
        default=None,
        ge=0,
        description="Current time in milliseconds; flushes a code whose debounce window has passed.",
    )


class SplitRouteRequest(_CamelModel):
    split_point: Optional[int] = Field(default=None, ge=0, alias="splitPoint")
    driver1_name: str = Field(default="Driver 1", alias="driver1Name")
    driver2_name: str = Field(default="Driver 2", alias="driver2Name")


class AddressModel(_CamelModel):
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None

    def to_domain(self) -> Address:
        return Address(**self.model_dump())


class GeocodeTestRequest(_CamelModel):
    address: AddressModel
