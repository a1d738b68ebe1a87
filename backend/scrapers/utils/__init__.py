"""Shared utilities for scrapers."""

from .normalizers import (
    clean_text,
    normalize_price,
    absolute_url,
)
from .extractors import (
    derive_external_id,
    first_srcset_url,
    extract_euro_price,
    extract_labeled_value,
)

__all__ = [
    'clean_text',
    'normalize_price',
    'absolute_url',
    'derive_external_id',
    'first_srcset_url',
    'extract_euro_price',
    'extract_labeled_value',
]
