"""Domain layer errors.

Structural faults raise these exceptions. Routine authentication and
verification outcomes are returned as tagged values instead, see
``accounts.domain.value.results``.
"""

from typing import Iterable


class DomainError(Exception):
    """Base domain error."""

    pass


class ValidationError(DomainError):
    """Missing or invalid fields, fixable by the caller."""

    def __init__(self, message: str, fields: Iterable[str] = ()):
        self.fields = list(fields)
        super().__init__(message)


class NotFoundError(DomainError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class UnboundEntityError(DomainError):
    """Raised when an entity needs collaborators it was never given."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: user is not bound to a UserContext (call bind() first)"
        )


class CredentialError(DomainError):
    """Malformed password hash or token input."""

    pass


class KeyNotFoundError(DomainError):
    """Raised when no key exists at the requested index."""

    def __init__(self, kind: str, index: int):
        self.kind = kind
        self.index = index
        super().__init__(f"No {kind} key at index {index}")


class KeyGenerationError(DomainError):
    """Key generation or artifact persistence failed."""

    pass


class EncodingError(DomainError):
    """Malformed PEM or JWK material."""

    pass
