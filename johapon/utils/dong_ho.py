"""
Dong/Ho Normalization

FLOW OVERVIEW
- normalize_dong(dong): strip the trailing '동' ("101동" -> "101").
- normalize_ho(ho): strip the trailing '호' and unify basement prefixes to 'B'
  ("비01" -> "B01", "지하101" -> "B101", "지1" -> "B1").
- create_normalized_ho(is_basement, ho): build a ho from a basement flag and a number.
- is_basement_ho(ho) / strip_basement_prefix(ho): basement helpers.

Blank input normalizes to None so unit comparisons treat "" and None alike.
"""

import re
from typing import Optional


_DONG_SUFFIX = re.compile(r'동$')
_HO_SUFFIX = re.compile(r'호$')
_BASEMENT_PREFIX = re.compile(r'^(비|지하|지(?=\d)|B)')
_BASEMENT_TEST = re.compile(r'^(비|B|지하|지(?=\d))')


def normalize_dong(dong: Optional[str]) -> Optional[str]:
    if not dong:
        return None
    normalized = _DONG_SUFFIX.sub('', dong.strip())
    return normalized.strip() or None


def normalize_ho(ho: Optional[str]) -> Optional[str]:
    if not ho:
        return None
    normalized = _HO_SUFFIX.sub('', ho.strip())
    # Order matters: '지하' must be tried before the bare '지'
    normalized = re.sub(r'^비', 'B', normalized)
    normalized = re.sub(r'^지하', 'B', normalized)
    normalized = re.sub(r'^지(?=\d)', 'B', normalized)
    return normalized.strip() or None


def create_normalized_ho(is_basement: bool, ho: Optional[str]) -> Optional[str]:
    """
    Build a normalized ho from the registration form's basement toggle.

    Any basement marker already typed into `ho` is dropped first, so
    (True, "B101") and (True, "101") both give "B101".
    """
    normalized = strip_basement_prefix(ho)
    if not normalized:
        return None
    return f'B{normalized}' if is_basement else normalized


def is_basement_ho(ho: Optional[str]) -> bool:
    if not ho:
        return False
    return bool(_BASEMENT_TEST.match(ho.strip()))


def strip_basement_prefix(ho: Optional[str]) -> str:
    if not ho:
        return ''
    normalized = _HO_SUFFIX.sub('', ho.strip())
    return _BASEMENT_PREFIX.sub('', normalized)
