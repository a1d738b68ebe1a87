"""
Data normalization utilities for scrapers.

These functions standardize scraped text and URLs into consistent formats.
"""

import re
from typing import Optional
from urllib.parse import urljoin


def clean_text(text: Optional[str]) -> str:
    """
    Collapse whitespace (including non-breaking spaces) and trim.

    Examples:
        "  Saint\\xa0Laurent \\n" -> "Saint Laurent"
        None -> ""
    """
    if not text:
        return ''
    return re.sub(r'\s+', ' ', text.replace('\xa0', ' ')).strip()


def normalize_price(price_text: Optional[str]) -> Optional[str]:
    """
    Normalize a displayed price string.

    Keeps the storefront's own formatting but tidies spacing around
    the currency symbol.

    Examples:
        "1.250 €" -> "1.250 €"
        "€ 450" -> "€450"
        "  89,00\\xa0€ " -> "89,00 €"
    """
    text = clean_text(price_text)
    if not text:
        return None
    text = re.sub(r'(\d)\s*€', r'\1 €', text)
    text = re.sub(r'€\s+(\d)', r'€\1', text)
    return text


def absolute_url(base_url: str, href: Optional[str]) -> Optional[str]:
    """
    Resolve a possibly relative link against the site base URL.

    Examples:
        ("https://www.ssense.com/", "/en-de/men/product/x/y/1") -> "https://www.ssense.com/en-de/men/product/x/y/1"
        ("https://www.ssense.com/", "//img.ssense.com/a.jpg") -> "https://img.ssense.com/a.jpg"
        ("https://www.ssense.com/", "") -> None
    """
    href = (href or '').strip()
    if not href or href.startswith(('javascript:', 'data:')):
        return None
    return urljoin(base_url, href)
