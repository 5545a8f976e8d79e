"""
Request validation and response helpers shared by the v1 routers
"""
import re
from typing import Any, Dict, List, Optional

from case_intake.core.errors import ValidationError
from case_intake.core.outcome import Diagnostic

NUMERIC_ID = re.compile(r"^\d+$")


def validate_numeric_id(value: Optional[Any], label: str, code_prefix: str = "") -> str:
    """
    Require an ID made of digits only; returns it as a string.

    ``code_prefix`` namespaces the error codes, e.g. ``ORDER`` gives
    ``MISSING_ORDER_ID`` / ``INVALID_ORDER_ID``.
    """
    missing_code = f"MISSING_{code_prefix}_ID" if code_prefix else "INVALID_REQUEST"
    invalid_code = f"INVALID_{code_prefix}_ID" if code_prefix else "INVALID_REQUEST"

    if value is None or str(value).strip() == "":
        raise ValidationError(f"{label} is required", code=missing_code)

    text = str(value).strip()
    if not NUMERIC_ID.match(text):
        raise ValidationError(f"{label} must contain numerals only", code=invalid_code)
    return text


def render_diagnostics(diagnostics: List[Diagnostic]) -> List[Dict[str, Any]]:
    return [{"code": d.code, "message": d.message} for d in diagnostics]
