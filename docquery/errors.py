"""Exception types raised by the retrieval core."""


class DocQueryError(Exception):
    """Base class for DocQuery errors."""


class DimensionMismatchError(DocQueryError, ValueError):
    """Raised when a vector's length differs from the index dimension."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"vector dimension must be {expected}, got {actual}")


class DuplicateIdError(DocQueryError, ValueError):
    """Raised when inserting an external id that is already indexed."""

    def __init__(self, external_id: str):
        self.external_id = external_id
        super().__init__(f"vector with id {external_id!r} already exists")


class EmbeddingError(DocQueryError):
    pass


class GenerationError(DocQueryError):
    pass


class CorruptSnapshotError(DocQueryError):
    """Raised when a persisted index snapshot fails validation on load."""


class UnsupportedFileTypeError(DocQueryError, ValueError):
    pass


class DocumentNotFoundError(DocQueryError, KeyError):
    pass


class ExtractionError(DocQueryError):
    """Raised when a file's contents cannot be parsed."""
