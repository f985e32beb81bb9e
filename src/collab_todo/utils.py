from __future__ import annotations

from typing import Iterable, List, Optional


# PUBLIC_INTERFACE
def unique_in_order(values: Iterable[str]) -> List[str]:
    """
    Return the values with duplicates removed, keeping the first occurrence of each.

    Args:
        values: Any iterable of strings.

    Returns:
        A new list in original order.
    """
    seen = set()
    result: List[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            result.append(v)
    return result


# PUBLIC_INTERFACE
def clean_uids(values: Optional[Iterable[str]]) -> List[str]:
    """Trim subject identifiers, drop blank entries and duplicates."""
    if values is None:
        return []
    return unique_in_order(v.strip() for v in values if v and v.strip())


def clean_text(value: Optional[str]) -> Optional[str]:
    """Trim optional text; blank text becomes None."""
    if value is None:
        return None
    s = value.strip()
    return s or None
