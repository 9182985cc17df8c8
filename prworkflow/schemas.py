from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from prworkflow.services.purchase_request_service import LineItemInput


class LoginRequest(BaseModel):
    username: str
    password: str


class LineItemPayload(BaseModel):
    product_id: str
    quantity: int
    unit_price: Decimal = Field(default=Decimal('0'))

    def to_input(self) -> LineItemInput:
        return LineItemInput(product_id=self.product_id, quantity=self.quantity, unit_price=self.unit_price)


class CreatePurchaseRequest(BaseModel):
    items: list[LineItemPayload] = Field(default_factory=list)
    note: str | None = None
    client_id: str | None = None


class UpdatePurchaseRequest(BaseModel):
    note: str | None = None
    items: list[LineItemPayload] | None = None
    client_id: str | None = None


class StatusChangeRequest(BaseModel):
    status: str | None = None
    note: str | None = None


class SyncRequest(BaseModel):
    pr_id: str | None = None
