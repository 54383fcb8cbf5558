"""
Room Label Privacy Protection

Room labels often carry identifying text (estate or building names).
Before a label is shown on shared output, every configured privacy
keyword is removed from it.

Matching is whitespace tolerant: the keyword "Sunny Estate" also
removes "SunnyEstate" and "Sunny   Estate". The result has its
whitespace collapsed and trimmed.
"""

import re
from typing import Iterable, Optional

from rental_billing.config import get_settings

_WHITESPACE = re.compile(r"\s+")


class PrivacyKeywordError(ValueError):
    """A keyword list that can't be saved."""
    pass


def _keyword_pattern(keyword: str) -> re.Pattern:
    parts = keyword.split()
    return re.compile(r"\s*".join(re.escape(part) for part in parts))


def apply_privacy_protection(room_number: str, keywords: Iterable[str]) -> str:
    """
    Remove every keyword from a room label.

    Blank keywords are ignored. A blank label is returned unchanged.
    """
    keywords = list(keywords)
    if not room_number.strip() or not keywords:
        return room_number

    protected = room_number
    for keyword in keywords:
        keyword = keyword.strip()
        if not keyword:
            continue
        protected = _keyword_pattern(keyword).sub("", protected)

    return _WHITESPACE.sub(" ", protected).strip()


def clean_keywords(keywords: Iterable[str], limit: Optional[int] = None) -> list[str]:
    """Trim, drop blanks and duplicates (first one wins), keep at most `limit`."""
    if limit is None:
        limit = get_settings().billing.max_privacy_keywords

    cleaned = []
    for keyword in keywords:
        keyword = keyword.strip()
        if keyword and keyword not in cleaned:
            cleaned.append(keyword)
    return cleaned[:limit]


def is_valid_keyword(keyword: str) -> bool:
    max_length = get_settings().billing.privacy_keyword_max_length
    return bool(keyword.strip()) and len(keyword) <= max_length


def is_valid_keyword_list(keywords: list[str]) -> bool:
    max_count = get_settings().billing.max_privacy_keywords
    return len(keywords) <= max_count and all(is_valid_keyword(k) for k in keywords)


def prepare_keywords(keywords: Iterable[str]) -> list[str]:
    """
    Clean a keyword list for saving.

    Over-long lists are truncated by cleaning; an over-long keyword
    is rejected rather than cut.

    Raises:
        PrivacyKeywordError: If a keyword is too long
    """
    settings = get_settings().billing
    cleaned = clean_keywords(keywords, limit=settings.max_privacy_keywords)
    too_long = [k for k in cleaned if len(k) > settings.privacy_keyword_max_length]
    if too_long:
        raise PrivacyKeywordError(
            f"Keywords longer than {settings.privacy_keyword_max_length} "
            f"characters: {', '.join(too_long)}"
        )
    return cleaned
