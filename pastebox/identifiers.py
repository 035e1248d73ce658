"""
Slug and id allocation.

Slugs and ids are drawn from ``secrets`` because the id doubles as the
credential for update and delete.
"""
import logging
import secrets
import string
from typing import Callable, Optional, TypeVar

from pastebox.errors import (
    InvalidLabelError,
    LabelTakenError,
    SlugConflictError,
    SlugExhaustedError,
)

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_lowercase + string.digits
LABEL_PREFIXES = ("@", "~")

T = TypeVar("T")


def random_token(length: int) -> str:
    """Random base36 string of the given length."""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def validate_label(label: str, min_length: int = 2) -> str:
    """
    Check a client-chosen label.

    Args:
        label: Requested slug, including its ``@`` or ``~`` prefix
        min_length: Minimum length counting the prefix

    Returns:
        The label, unchanged

    Raises:
        InvalidLabelError: if the prefix or length is wrong
    """
    if not label.startswith(LABEL_PREFIXES):
        raise InvalidLabelError("Invalid label: must start with @ or ~")
    if len(label) < min_length:
        raise InvalidLabelError(
            f"Invalid label: must be at least {min_length} characters (including @ or ~)"
        )
    return label


class IdentifierAllocator:
    """Generates ids and slugs and drives the insert-retry loop."""

    def __init__(self, slug_length: int = 6, id_length: int = 13, max_attempts: int = 5):
        self.slug_length = slug_length
        self.id_length = id_length
        self.max_attempts = max_attempts

    def new_slug(self) -> str:
        return random_token(self.slug_length)

    def new_id(self) -> str:
        return random_token(self.id_length)

    def allocate(self, insert: Callable[[str, str], T], label: Optional[str] = None) -> T:
        """
        Run ``insert(id, slug)`` until it succeeds.

        A label gets exactly one attempt. A random slug is regenerated on
        every ``SlugConflictError`` up to ``max_attempts`` times.

        Raises:
            LabelTakenError: the requested label is held by another paste
            SlugExhaustedError: every random slug collided
        """
        if label is not None:
            try:
                return insert(self.new_id(), label)
            except SlugConflictError:
                raise LabelTakenError(label)

        for attempt in range(1, self.max_attempts + 1):
            slug = self.new_slug()
            try:
                return insert(self.new_id(), slug)
            except SlugConflictError:
                logger.warning(f"Slug {slug} collided (attempt {attempt}/{self.max_attempts})")

        logger.error(f"Failed to generate unique slug after {self.max_attempts} attempts")
        raise SlugExhaustedError("Failed to generate unique slug")
