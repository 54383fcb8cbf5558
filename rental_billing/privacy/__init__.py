"""Privacy protection package."""

from rental_billing.privacy.protection import (
    PrivacyKeywordError,
    apply_privacy_protection,
    clean_keywords,
    is_valid_keyword,
    is_valid_keyword_list,
    prepare_keywords,
)

__all__ = [
    "PrivacyKeywordError",
    "apply_privacy_protection",
    "clean_keywords",
    "is_valid_keyword",
    "is_valid_keyword_list",
    "prepare_keywords",
]
