"""
Order extractor: Shopify order -> case data
"""
from dataclasses import dataclass
from typing import Optional

from case_intake.core.config import settings
from case_intake.core.errors import ExtractionError
from case_intake.schemas.order import Order

NAME_MAX_LENGTH = 255
EMAIL_MAX_LENGTH = 255
INSTRUCTIONS_MAX_LENGTH = 4000
RUSH_MARKER = "RUSH"


@dataclass(frozen=True)
class ExtractedCase:
    case_id: str
    order_number: str
    first_name: str
    last_name: str
    email: str
    instructions: str
    user_id: Optional[int]
    is_rush: bool


def is_rush_order(order: Order, rush_sku: Optional[str] = None) -> bool:
    """A rush SKU on any line item, or RUSH in any SKU or shipping line"""
    rush_sku = rush_sku or settings.RUSH_SKU
    for item in order.line_items:
        sku = item.sku or ""
        if sku == rush_sku or RUSH_MARKER in sku:
            return True
    for line in order.shipping_lines:
        if RUSH_MARKER in (line.code or "") or RUSH_MARKER in (line.title or ""):
            return True
    return False


def build_instructions(order: Order) -> str:
    instructions = order.note or ""
    for item in order.line_items:
        instructions += f"\n{item.sku or ''}\n{item.title or ''}"
    return instructions


def _fail(reason: str) -> ExtractionError:
    return ExtractionError(f"Failed to extract case data: {reason}")


def extract_case_data(order: Order, user_id: Optional[int] = None) -> ExtractedCase:
    """
    Validate an order and derive the case fields from it.

    The order name is reused as the case ID. Raises ExtractionError when the
    order has no usable email, no customer name, no instructions or no name.
    """
    customer = order.customer
    first_name = (customer.first_name if customer else None) or ""
    last_name = (customer.last_name if customer else None) or ""
    email = (customer.email if customer else None) or order.email

    if not email:
        raise _fail("Missing customer email")
    if not first_name and not last_name:
        raise _fail("Missing customer first and last name. One must be present.")

    instructions = build_instructions(order)
    if not instructions:
        raise _fail("Failed to generate instructions. No note or line items")

    order_number = order.name.strip()
    if not order_number:
        raise _fail("Missing order name")

    return ExtractedCase(
        case_id=order_number,
        order_number=order_number,
        first_name=first_name[:NAME_MAX_LENGTH],
        last_name=last_name[:NAME_MAX_LENGTH],
        email=email[:EMAIL_MAX_LENGTH],
        instructions=instructions[:INSTRUCTIONS_MAX_LENGTH],
        user_id=user_id,
        is_rush=is_rush_order(order),
    )
