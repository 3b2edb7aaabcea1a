"""Exception types raised by the index synchronizer."""


class IndexSyncError(Exception):
    """Base class for synchronizer errors."""


class InvalidArgumentError(IndexSyncError, ValueError):
    """A malformed identifier or size was passed to a public operation."""


class TransformError(IndexSyncError):
    """An article could not be mapped to index records."""

    def __init__(self, document_id, reason: str):
        super().__init__(f"Cannot transform document {document_id}: {reason}")
        self.document_id = document_id
        self.reason = reason


class IndexSubmissionError(IndexSyncError):
    """The search index rejected or failed an add, delete or clear call."""


def parse_identifier(value, name: str = "identifier") -> int:
    """Return `value` as a positive int or raise InvalidArgumentError.

    Accepts ints and strings of digits; booleans are rejected.
    """
    if isinstance(value, bool):
        raise InvalidArgumentError(f"Invalid {name}: {value!r}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdecimal():
        parsed = int(value.strip())
    else:
        raise InvalidArgumentError(f"Invalid {name}: {value!r}")
    if parsed <= 0:
        raise InvalidArgumentError(f"Invalid {name}: {value!r}")
    return parsed
