"""Retail unit normalization and package size parsing."""

from __future__ import annotations

import math
import re

# Surface forms → canonical unit token
_UNIT_SYNONYMS: dict[str, str] = {
    "kg": "kilogramos",
    "kgs": "kilogramos",
    "kilo": "kilogramos",
    "kilos": "kilogramos",
    "kilogramo": "kilogramos",
    "kilogramos": "kilogramos",
    "g": "gramos",
    "gr": "gramos",
    "grs": "gramos",
    "gramo": "gramos",
    "gramos": "gramos",
    "l": "litros",
    "lt": "litros",
    "lts": "litros",
    "litro": "litros",
    "litros": "litros",
    "ml": "mililitros",
    "cc": "mililitros",
    "mililitro": "mililitros",
    "mililitros": "mililitros",
    "lb": "libras",
    "lbs": "libras",
    "libra": "libras",
    "libras": "libras",
    "u": "unidades",
    "und": "unidades",
    "unidad": "unidades",
    "unidades": "unidades",
    "pieza": "unidades",
    "piezas": "unidades",
    "pza": "unidades",
    "pzas": "unidades",
}

# Canonical unit → (family, amount in the family's base unit)
# Base units: grams for weight, milliliters for volume.
_UNIT_TO_BASE: dict[str, tuple[str, float]] = {
    "kilogramos": ("peso", 1000.0),
    "gramos": ("peso", 1.0),
    "libras": ("peso", 500.0),
    "litros": ("volumen", 1000.0),
    "mililitros": ("volumen", 1.0),
}

_NUM = r"(\d+(?:[.,]\d+)?)"

# Package size patterns, tried in order. Packs go first so "6X200G" is not
# read as a single 200 g bag.
_PACK_PATTERN = re.compile(r"(\d+)\s*X\s*(\d+(?:[.,]\d+)?)\s*(G|GR|ML|CC)\b", re.IGNORECASE)
_SIZE_PATTERNS: list[tuple[re.Pattern[str], str, float]] = [
    (re.compile(_NUM + r"\s*(?:KG|KILOS?)\b", re.IGNORECASE), "peso", 1000.0),
    (re.compile(_NUM + r"\s*(?:G|GR|GRS|GRAMOS?)\b", re.IGNORECASE), "peso", 1.0),
    (re.compile(_NUM + r"\s*(?:LB|LBS|LIBRAS?)\b", re.IGNORECASE), "peso", 500.0),
    (re.compile(_NUM + r"\s*(?:L|LT|LTS|LITROS?)\b", re.IGNORECASE), "volumen", 1000.0),
    (re.compile(_NUM + r"\s*(?:ML|MILILITROS?)\b", re.IGNORECASE), "volumen", 1.0),
    (re.compile(_NUM + r"\s*CC\b", re.IGNORECASE), "volumen", 1.0),
]

# Description patterns that signal a presentation matching a requested unit
_UNIT_DESCRIPTION_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "libras": [
        re.compile(r"\b(lb|libras?)\b", re.IGNORECASE),
        re.compile(r"\b500\s*(g|gr)\b", re.IGNORECASE),
    ],
    "kilogramos": [
        re.compile(r"\b(kg|kilos?)\b", re.IGNORECASE),
        re.compile(r"\d\s*kg\b", re.IGNORECASE),
        re.compile(r"\b1000\s*(g|gr)\b", re.IGNORECASE),
    ],
    "litros": [
        re.compile(r"\b(l|lt|litros?)\b", re.IGNORECASE),
        re.compile(r"\d\s*(l|lt)\b", re.IGNORECASE),
        re.compile(r"\b1000\s*(ml|cc)\b", re.IGNORECASE),
    ],
    "gramos": [
        re.compile(r"\d\s*(g|gr|grs)\b", re.IGNORECASE),
        re.compile(r"\bgramos?\b", re.IGNORECASE),
    ],
    "mililitros": [
        re.compile(r"\d\s*(ml|cc)\b", re.IGNORECASE),
        re.compile(r"\b(ml|cc)\b", re.IGNORECASE),
    ],
}


def normalize_unit(unit: str) -> str:
    """Map a unit surface form to its canonical token.

    Unknown tokens are returned lower-cased but otherwise unchanged.
    """
    token = unit.strip().lower().rstrip(".")
    return _UNIT_SYNONYMS.get(token, token)


def unit_family(unit: str | None) -> str | None:
    """Return "peso", "volumen" or None for counts and unknown units."""
    if not unit:
        return None
    entry = _UNIT_TO_BASE.get(normalize_unit(unit))
    return entry[0] if entry else None


def to_base_amount(amount: float, unit: str) -> float:
    """Convert an amount to grams (weight) or milliliters (volume).

    Returns 0.0 when the unit has no weight/volume meaning.
    """
    entry = _UNIT_TO_BASE.get(normalize_unit(unit))
    if entry is None:
        return 0.0
    return amount * entry[1]


def package_size(description: str) -> tuple[float, str] | None:
    """Parse the package size printed in a product description.

    Args:
        description: e.g. "ARROZ DIANA 500G", "ACEITE 1.5 L", "YOGURT 6X200G"

    Returns:
        (amount, family) with amount in grams or milliliters, or None.
    """
    if not description:
        return None

    m = _PACK_PATTERN.search(description)
    if m:
        count = int(m.group(1))
        each = _parse_number(m.group(2))
        family = "peso" if m.group(3).upper() in ("G", "GR") else "volumen"
        return (count * each, family)

    for pattern, family, multiplier in _SIZE_PATTERNS:
        m = pattern.search(description)
        if m:
            return (_parse_number(m.group(1)) * multiplier, family)

    return None


def extract_size(description: str) -> float:
    """Package size in grams/milliliters, 0.0 when none is printed."""
    size = package_size(description)
    return size[0] if size else 0.0


def matches_unit(description: str, unit: str) -> bool:
    """Check if a description advertises a presentation in the given unit."""
    patterns = _UNIT_DESCRIPTION_PATTERNS.get(normalize_unit(unit), [])
    return any(p.search(description) for p in patterns)


def convert_to_product_quantity(
    quantity: float, unit: str | None, description: str
) -> int:
    """Convert a requested amount into a number of packages.

    "2 kilos" of a 500 g bag is 4 packages. A weight or volume request
    against a product with no printed size, or a size in the other family,
    is one package. Without a weight/volume unit the quantity is rounded
    up and used as a package count.
    """
    family = unit_family(unit)
    if family is None:
        return max(1, math.ceil(quantity))
    size = package_size(description)
    if size is None or size[1] != family or size[0] <= 0:
        return 1
    total = to_base_amount(quantity, unit or "")
    return max(1, math.ceil(round(total / size[0], 6)))


def _parse_number(s: str) -> float:
    """Parse a decimal that may use a comma separator."""
    try:
        return float(s.replace(",", "."))
    except ValueError:
        return 0.0
