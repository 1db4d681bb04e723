"""Field role classification.

Pure and deterministic: the same descriptor always yields the same role, so
the rules can be exercised without a live page.
"""

from __future__ import annotations

from ..config import DEFAULT_HEURISTICS, Heuristics
from ..constants import InputRole
from .models import FieldDescriptor

# Controls a username can be typed into (email is handled separately)
TEXTUAL_TYPES = {"text", "", "search", "url"}

# Controls a one-time code can be typed into
CODE_TYPES = {"number", "tel", "text", ""}


def _matches(values: tuple[str, ...], keywords: list[str]) -> bool:
    haystacks = [value.lower() for value in values if value]
    return any(keyword in haystack for keyword in keywords for haystack in haystacks)


def _has_code_shape(descriptor: FieldDescriptor) -> bool:
    if descriptor.max_length is not None and 4 <= descriptor.max_length <= 8:
        return True
    if descriptor.autocomplete == "one-time-code":
        return True
    return descriptor.input_mode == "numeric"


def classify(descriptor: FieldDescriptor, heuristics: Heuristics = DEFAULT_HEURISTICS) -> InputRole:
    """Assign an authentication role to a field."""
    control_type = (descriptor.control_type or "").lower()

    if control_type == "password":
        return InputRole.PASSWORD
    if control_type == "email":
        return InputRole.USERNAME

    if control_type in TEXTUAL_TYPES and _matches(
        (descriptor.name, descriptor.id, descriptor.placeholder), heuristics.username_keywords
    ):
        return InputRole.USERNAME

    if control_type in CODE_TYPES:
        if _matches(
            (descriptor.name, descriptor.id, descriptor.placeholder, descriptor.class_name),
            heuristics.mfa_keywords,
        ):
            return InputRole.MFA_CODE
        if _has_code_shape(descriptor):
            return InputRole.MFA_CODE

    return InputRole.UNCLASSIFIED
