"""
Contact form validation and sanitization.

Checks every field independently and collects all errors in one pass.
Sanitized values are always computed, but only handed out when the
submission is valid.
"""

import re
from typing import Any, Dict, List, Mapping, Optional

from src.shared.contact.schemas import NormalizedSubmission, ValidationResult

# No whitespace, "@" or address-list punctuation in any part
EMAIL_PATTERN = re.compile(r'^[^\s@,;<>"()]+@[^\s@,;<>"()]+\.[^\s@,;<>"()]+$')

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 100
SUBJECT_MIN_LENGTH = 3
SUBJECT_MAX_LENGTH = 200
MESSAGE_MIN_LENGTH = 10
MESSAGE_MAX_LENGTH = 2000

NAME_ERROR = "Name must be at least 2 characters long"
EMAIL_ERROR = "Valid email address is required"
SUBJECT_ERROR = "Subject must be at least 3 characters long"
MESSAGE_ERROR = "Message must be at least 10 characters long"


def _field(raw: Mapping[str, Any], key: str) -> Optional[str]:
    """Return the field as a string, or None if absent or not a string."""
    value = raw.get(key)
    if isinstance(value, str):
        return value
    return None


def _single_line(value: str) -> str:
    """Trim and collapse whitespace runs (line breaks included) to one space."""
    return " ".join(value.split())


def sanitize(raw: Mapping[str, Any]) -> Dict[str, str]:
    """
    Best-effort normalization of every field, valid or not.

    Trims, lowercases the email, collapses single-line fields and
    truncates to the maximum lengths, trimming again after the cut.
    Missing fields become empty strings.
    """
    name = _field(raw, "name") or ""
    email = _field(raw, "email") or ""
    subject = _field(raw, "subject") or ""
    message = _field(raw, "message") or ""

    return {
        "name": _single_line(name)[:NAME_MAX_LENGTH].rstrip(),
        "email": email.strip().lower()[:EMAIL_MAX_LENGTH].rstrip(),
        "subject": _single_line(subject)[:SUBJECT_MAX_LENGTH].rstrip(),
        "message": message.strip()[:MESSAGE_MAX_LENGTH].rstrip(),
    }


def validate(raw: Mapping[str, Any]) -> ValidationResult:
    """
    Validate a raw contact submission.

    Checks run against the sanitized values, so a valid result always
    satisfies the length and address rules. An email longer than the
    maximum is rejected rather than cut.

    Args:
        raw: Field name -> value mapping as received

    Returns:
        ValidationResult with every error found, and the sanitized
        submission only when there are none
    """
    sanitized = sanitize(raw)
    errors: List[str] = []

    if _field(raw, "name") is None or len(sanitized["name"]) < NAME_MIN_LENGTH:
        errors.append(NAME_ERROR)

    email = _field(raw, "email")
    if (
        email is None
        or len(email.strip()) > EMAIL_MAX_LENGTH
        or not EMAIL_PATTERN.match(sanitized["email"])
    ):
        errors.append(EMAIL_ERROR)

    if _field(raw, "subject") is None or len(sanitized["subject"]) < SUBJECT_MIN_LENGTH:
        errors.append(SUBJECT_ERROR)

    if _field(raw, "message") is None or len(sanitized["message"]) < MESSAGE_MIN_LENGTH:
        errors.append(MESSAGE_ERROR)

    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(errors=[], sanitized=NormalizedSubmission(**sanitized))
