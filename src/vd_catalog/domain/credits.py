"""Credit-grant extraction for CRM products.

The CRM has no dedicated credits field. Packages carry it as a variant named
"Credits" whose first option is e.g. "300" or "300 credits"; older packages
only mention it in the product name ("Starter — 300 Credits").
"""

import re
from typing import Any

_FIRST_INT = re.compile(r"(\d+)")
_NAME_CREDITS = re.compile(r"(\d+)\s*credits?", re.IGNORECASE)


def _from_variants(variants: Any) -> int | None:
    if not isinstance(variants, list):
        return None
    for variant in variants:
        if not isinstance(variant, dict):
            continue
        if str(variant.get("name", "")).strip().lower() != "credits":
            continue
        options = variant.get("options") or []
        if not options or not isinstance(options[0], dict):
            return None
        match = _FIRST_INT.search(str(options[0].get("name", "")))
        return int(match.group(1)) if match else None
    return None


def _from_name(name: str) -> int | None:
    match = _NAME_CREDITS.search(name or "")
    return int(match.group(1)) if match else None


def extract_credits(raw_product: dict[str, Any], default: int) -> int:
    """Variant first, then product name, then `default`. Never returns 0."""
    credits = _from_variants(raw_product.get("variants"))
    if not credits:
        credits = _from_name(str(raw_product.get("name", "")))
    return credits if credits else default
