"""
Domain exceptions raised by the paste service, the store and the client.
"""


class PasteError(Exception):
    """Base class for all pastebox errors."""

    status_code = 500


class PasteValidationError(PasteError):
    """Client supplied something we refuse to store. Always recoverable."""

    status_code = 400


class InvalidContentError(PasteValidationError):
    pass


class EmptyContentError(PasteValidationError):
    pass


class ContentTooLargeError(PasteValidationError):
    status_code = 413


class InvalidLabelError(PasteValidationError):
    pass


class InvalidUrlError(PasteValidationError):
    pass


class InvalidTTLError(PasteValidationError):
    pass


class SlugConflictError(PasteError):
    """Raised by a store when the slug is already held by another row."""

    def __init__(self, slug: str):
        super().__init__(f"slug {slug!r} is already taken")
        self.slug = slug


class LabelTakenError(PasteError):
    """A client-requested label is already in use. Not retried."""

    status_code = 200

    def __init__(self, label: str):
        super().__init__(f"Label {label} already exists")
        self.label = label


class IdCollisionError(PasteError):
    """Raised by a store when a generated id already exists."""


class SlugExhaustedError(PasteError):
    """Every random slug attempt collided."""


class DecryptionError(PasteError):
    """Wrong passphrase or a corrupt envelope."""
