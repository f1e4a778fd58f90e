"""Custom exceptions for the packaging archive application."""


class PackagingError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ConfigurationError(PackagingError):
    """Raised at startup when required settings are missing or invalid."""
    def __init__(self, message, payload=None):
        super().__init__(message, 500, payload)


class InvalidPayloadError(PackagingError):
    """Raised when a job payload or request argument cannot be interpreted."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class NotFoundError(PackagingError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class StoreError(PackagingError):
    """Base class for failures reported by a document store."""
    def __init__(self, message="Document store error", status_code=503, payload=None):
        super().__init__(message, status_code, payload)


class DocumentNotFoundError(StoreError):
    """Raised by get/update/delete when no document has the given id."""
    def __init__(self, collection, document_id):
        super().__init__(
            f"Document {document_id} not found in {collection}",
            status_code=404,
            payload={'collection': collection, 'id': document_id},
        )
        self.collection = collection
        self.document_id = document_id


class DocumentConflictError(StoreError):
    """Raised when a write violates a uniqueness constraint."""
    def __init__(self, collection, message=None):
        super().__init__(
            message or f"Unique constraint violated in {collection}",
            status_code=409,
            payload={'collection': collection},
        )
        self.collection = collection


class StoreUnavailableError(StoreError):
    """Transient failure talking to the store (network, timeout, rate limit)."""
    def __init__(self, message="Document store unavailable"):
        super().__init__(message, 503)
