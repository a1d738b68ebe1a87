"""
Data extraction utilities for scrapers.

These functions pull identifiers, prices and image URLs out of raw
attribute and text values using regex patterns.
"""

import re
from functools import lru_cache
from typing import Optional


@lru_cache(maxsize=32)
def _compile(pattern: str):
    return re.compile(pattern)


def derive_external_id(url: Optional[str], pattern: str) -> Optional[str]:
    """
    Derive a product id from a detail URL.

    The pattern must contain one capture group. Pure and idempotent:
    the same URL always yields the same id.

    Examples:
        ("https://de.vestiairecollective.com/jacke-12345.shtml", r'(\\d+)\\.shtml') -> "12345"
        ("https://www.vinted.de/items/987-lederjacke", r'/items/(\\d+)') -> "987"
        ("https://www.vinted.de/catalog", r'/items/(\\d+)') -> None

    Args:
        url: Absolute or relative detail URL
        pattern: Source-specific id regex

    Returns:
        The id string or None
    """
    if not url:
        return None
    match = _compile(pattern).search(url)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def first_srcset_url(srcset: Optional[str]) -> Optional[str]:
    """
    Get the first URL from a srcset attribute.

    Examples:
        "https://img/a.jpg 1x, https://img/b.jpg 2x" -> "https://img/a.jpg"
        "https://img/a.jpg" -> "https://img/a.jpg"
    """
    if not srcset:
        return None
    first = srcset.split(',')[0].strip()
    if not first:
        return None
    return first.split()[0]


def extract_euro_price(text: str) -> Optional[str]:
    """
    Extract a decimal euro price from free text.

    Examples:
        "Lederjacke, marke: Zara, 45,00 €" -> "45,00 €"
        "12,50€ inkl." -> "12,50 €"
        "no price" -> None
    """
    if not text:
        return None
    match = re.search(r'(\d+(?:\.\d{3})*,\d+)\s*€', text)
    if match:
        return f"{match.group(1)} €"
    return None


def extract_labeled_value(text: str, label: str) -> Optional[str]:
    """
    Extract the value after "label:" up to the next comma.

    Examples:
        ("Jacke, marke: Zara, größe: M", "marke") -> "Zara"
        ("Jacke, größe: M", "zustand") -> None
    """
    if not text:
        return None
    match = re.search(rf'{re.escape(label)}:\s*([^,]+)', text, re.IGNORECASE)
    if match:
        value = match.group(1).strip()
        return value or None
    return None
