"""Exception types raised across docdesk."""


class DocdeskError(Exception):
    """Base class for all docdesk failures."""


class ServiceUnavailable(DocdeskError):
    """The embedding service or vector index could not be reached."""


class InvalidResponse(DocdeskError):
    """An external service answered with a malformed payload."""


class IndexWriteError(DocdeskError):
    """Writing to the vector index failed."""


class IndexQueryError(DocdeskError):
    """Querying the vector index failed."""


class ValidationError(DocdeskError):
    """Caller input was malformed."""


class NotFound(DocdeskError):
    """A referenced document or note does not exist."""


class StoreError(DocdeskError):
    """The relational store rejected a read or write."""
