"""
SchoolDesk Backend — School Field Validation
==============================================

What:  Pure functions that check a candidate school's text fields.
Why:   Form fields arrive as loose strings from multipart bodies; the rules
       (minimum lengths, Indian mobile number, email shape) are business
       rules rather than schema types, so they live here instead of in the
       request schema.
How:   Every rule is evaluated independently and failures accumulate, so a
       client sees all problems in one response instead of fixing them one
       round-trip at a time.
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping

REQUIRED_FIELDS = ("name", "address", "city", "state", "contact", "email_id")

# Ten ASCII digits, leading 6-9. `[0-9]` rather than `\d`, which would also
# accept non-ASCII digits.
CONTACT_PATTERN = re.compile(r"[6-9][0-9]{9}")
# ASCII letters only: without re.ASCII, IGNORECASE lets `[A-Z]` match U+017F, U+0131 and U+212A
EMAIL_PATTERN = re.compile(
    r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE | re.ASCII
)

# (field, minimum trimmed length, message)
LENGTH_RULES = (
    ("name", 2, "School name must be at least 2 characters long"),
    ("address", 10, "Address must be at least 10 characters long"),
    ("city", 2, "City must be at least 2 characters long"),
    ("state", 2, "State must be at least 2 characters long"),
)

CONTACT_MESSAGE = "Please enter a valid 10-digit Indian mobile number starting with 6-9"
EMAIL_MESSAGE = "Please enter a valid email address"


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def _text(data: Mapping[str, Any], key: str) -> str:
    """Returns the field as a string, or "" when missing or not a string."""
    value = data.get(key)
    return value if isinstance(value, str) else ""


def validate_school_data(data: Mapping[str, Any]) -> ValidationResult:
    """
    Validate a candidate school record.

    Args:
        data: Mapping with name, address, city, state, contact, email_id.
              Missing keys and non-string values fail their rule.

    Returns:
        ValidationResult with errors in rule order (name, address, city,
        state, contact, email_id). `is_valid` is True only when empty.
    """
    errors: List[str] = []

    for key, min_length, message in LENGTH_RULES:
        if len(_text(data, key).strip()) < min_length:
            errors.append(message)

    if not CONTACT_PATTERN.fullmatch(_text(data, "contact")):
        errors.append(CONTACT_MESSAGE)

    if not EMAIL_PATTERN.fullmatch(_text(data, "email_id")):
        errors.append(EMAIL_MESSAGE)

    return ValidationResult(is_valid=not errors, errors=errors)


def missing_required_fields(data: Mapping[str, Any]) -> List[str]:
    """Names of required fields that are absent or blank."""
    return [key for key in REQUIRED_FIELDS if not _text(data, key).strip()]
