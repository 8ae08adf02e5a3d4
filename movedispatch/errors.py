from enum import Enum


class CapacityErrorKind(str, Enum):
    EXHAUSTED = "Exhausted"
    INVALID_WINDOW = "InvalidWindow"
    OVER_CAP = "OverCap"


class StateErrorKind(str, Enum):
    INVALID_TRANSITION = "InvalidTransition"


class DomainError(Exception):
    code = "domain_error"
    status_code = 400

    def __init__(self, message: str, kind: Enum | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind

    def to_dict(self) -> dict:
        payload = {"detail": self.message, "code": self.code}
        if self.kind is not None:
            payload["kind"] = self.kind.value
        return payload


class CapacityError(DomainError):
    code = "capacity_error"

    def __init__(self, kind: CapacityErrorKind, message: str) -> None:
        super().__init__(message, kind)

    @property
    def status_code(self) -> int:
        return 409 if self.kind == CapacityErrorKind.EXHAUSTED else 422


class StateError(DomainError):
    code = "state_error"
    status_code = 409

    def __init__(
        self,
        message: str,
        kind: StateErrorKind = StateErrorKind.INVALID_TRANSITION,
    ) -> None:
        super().__init__(message, kind)


class NotFoundError(DomainError):
    code = "not_found"
    status_code = 404


class ConcurrencyConflict(DomainError):
    """The store rejected the transaction; retrying the whole call is safe."""

    code = "concurrency_conflict"
    status_code = 409


class InvalidRequestError(DomainError):
    code = "invalid_request"
    status_code = 422


class PermissionDeniedError(DomainError):
    code = "permission_denied"
    status_code = 403
