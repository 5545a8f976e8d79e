"""
Encoded SKU decoder

Storefront products carry their lab prescription in the SKU, e.g.
``--A1-UL-R33330.1--``: shade ``A1``, arch code ``UL`` (upper and lower) and
product ``R33330.1``. The same codes may also be typed into the order note.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple
import re

from case_intake.models.case import ToothLocation
from case_intake.schemas.order import Order

ENCODING_MARKER = "--"

# Embedded codes inside free text: --<shade>-<arch>-<product>--
SKU_PATTERN = re.compile(r"--[A-Za-z0-9]+-[A-Za-z]+-[A-Za-z0-9.]+--")

# Arch code -> (tooth location, quantity)
ARCH_CODES = {
    "U": (ToothLocation.UPPER, 1),
    "L": (ToothLocation.LOWER, 1),
    "UL": (ToothLocation.BOTH, 2),
    "LU": (ToothLocation.BOTH, 2),
}


@dataclass(frozen=True)
class DecodedSku:
    sku: str
    product: str
    tooth_location: str
    quantity: int
    shade: str

    @property
    def arches(self) -> List[str]:
        """Tooth rows to record for this item, in upper-then-lower order"""
        return [
            arch for arch in (ToothLocation.UPPER, ToothLocation.LOWER)
            if arch in self.tooth_location
        ]


def map_arch_code(code: str) -> Tuple[str, int]:
    """Unknown codes still yield an item, just without a tooth location"""
    return ARCH_CODES.get((code or "").upper(), (ToothLocation.NONE, 1))


def decode_sku(sku: Optional[str]) -> Optional[DecodedSku]:
    """
    Decode one encoded SKU.

    Returns None when the SKU does not have the three dash-separated fields
    (shade, arch code, product). Dots inside a field are literal.
    """
    if not sku:
        return None

    body = sku.strip()
    if body.startswith(ENCODING_MARKER):
        body = body[len(ENCODING_MARKER):]
    if body.endswith(ENCODING_MARKER):
        body = body[:-len(ENCODING_MARKER)]

    fields = body.split("-")
    if len(fields) < 3:
        return None

    shade, arch_code, product = fields[0], fields[1], fields[2]
    if not product:
        return None

    tooth_location, quantity = map_arch_code(arch_code)
    return DecodedSku(
        sku=sku,
        product=product,
        tooth_location=tooth_location,
        quantity=quantity,
        shade=shade,
    )


def find_encoded_skus(text: Optional[str]) -> List[str]:
    """Scan free text for embedded SKUs"""
    if not text:
        return []
    return SKU_PATTERN.findall(text)


def collect_order_skus(order: Order) -> List[str]:
    """
    Every encoded SKU of an order: codes typed into the note first, then line
    items whose SKU starts with the encoding marker.
    """
    skus = find_encoded_skus(order.note)
    for item in order.line_items:
        sku = item.sku or ""
        if sku.startswith(ENCODING_MARKER):
            skus.append(sku)
    return skus
