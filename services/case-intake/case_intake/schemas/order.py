"""
Shopify order payload models

Orders arrive either flattened by the portal ({"lineItems": [...]}) or as
returned by the Shopify GraphQL API ({"lineItems": {"edges": [{"node": ...}]}}).
Both shapes validate into the same Order.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional


def _flatten_connection(value: Any) -> Any:
    """Unwrap a GraphQL connection ({"edges": [{"node": {...}}]}) into a list"""
    if value is None:
        return []
    if isinstance(value, dict) and "edges" in value:
        return [edge.get("node") or {} for edge in value.get("edges") or []]
    return value


class OrderModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class OrderCustomer(OrderModel):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None


class OrderLineItem(OrderModel):
    sku: Optional[str] = None
    title: Optional[str] = None
    quantity: Optional[int] = None


class OrderShippingLine(OrderModel):
    code: Optional[str] = None
    title: Optional[str] = None


class Order(OrderModel):
    name: str = ""
    note: Optional[str] = None
    email: Optional[str] = None
    customer: Optional[OrderCustomer] = None
    line_items: List[OrderLineItem] = Field(default_factory=list, alias="lineItems")
    shipping_lines: List[OrderShippingLine] = Field(default_factory=list, alias="shippingLines")

    @field_validator("line_items", "shipping_lines", mode="before")
    @classmethod
    def unwrap_connections(cls, value: Any) -> Any:
        return _flatten_connection(value)

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value)
