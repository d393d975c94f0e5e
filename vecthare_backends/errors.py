"""Error taxonomy shared by every vector backend."""

from __future__ import annotations


class VectorBackendError(Exception):
    """Base error for backend operations."""


class BackendUnavailable(VectorBackendError):
    """The backend could not be reached or configured."""


class CapabilityUnavailable(VectorBackendError):
    """An extended operation needs a capability this backend lacks."""


class RemoteOperationFailed(VectorBackendError):
    """A required call returned a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str | None = None,
        backend: str | None = None,
        collection_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.backend = backend
        self.collection_id = collection_id


class PartialQueryFailure(VectorBackendError):
    """One collection failed inside a multi-collection query."""

    def __init__(self, collection_id: str, cause: BaseException) -> None:
        super().__init__(f"Query failed for collection {collection_id}: {cause}")
        self.collection_id = collection_id
        self.cause = cause
