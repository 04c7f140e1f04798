# app/services/exceptions.py

class ServiceError(Exception):
    """Base class for service-layer errors."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class DomainValidationError(ServiceError):
    """Invalid domain input: missing fields, bad enum values, broken invariants."""
    pass


class ResourceNotFoundError(ServiceError):
    """The identifier does not resolve to a record."""
    pass


class ConflictError(ServiceError):
    """Conflicting state: stale version on update, exhausted usage limit."""
    pass


class AuthorizationError(ServiceError):
    """The caller lacks a permission required by the operation."""
    pass
