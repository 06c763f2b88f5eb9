"""
Typed errors raised by the order, production and inventory services.

Every error carries a machine-readable ``code`` and a ``data`` dict so the
HTTP layer can answer with a stable payload without parsing messages:

    GiftboxError
    +-- NotFoundError            NOT_FOUND
    +-- InvalidArgumentError     INVALID_ARGUMENT
    +-- InvalidTransitionError   INVALID_TRANSITION
    +-- InsufficientStockError   INSUFFICIENT_STOCK
    +-- ConflictError            CONFLICT
    |   +-- StaleVersionError    STALE_VERSION
    |   +-- DuplicateRequestError DUPLICATE_REQUEST
    +-- InternalError            INTERNAL
"""

from decimal import Decimal
from typing import Any


class GiftboxError(Exception):
    code: str = "GIFTBOX_ERROR"
    status_code: int = 500

    def __init__(self, message: str, **data: Any):
        super().__init__(message)
        self.message = message
        self.data = data


class NotFoundError(GiftboxError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found", entity=entity, id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class InvalidArgumentError(GiftboxError):
    code = "INVALID_ARGUMENT"
    status_code = 400


class InvalidTransitionError(GiftboxError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: str, target: str, allowed: list[str]):
        super().__init__(
            f"Cannot move order from '{current}' to '{target}'",
            current=current,
            target=target,
            allowed=allowed,
        )
        self.current = current
        self.target = target
        self.allowed = allowed


class InsufficientStockError(GiftboxError):
    code = "INSUFFICIENT_STOCK"
    status_code = 400

    def __init__(self, material_id: str, available: Decimal, requested: Decimal, unit: str = ""):
        shown = format(Decimal(str(available)).normalize(), "f")
        super().__init__(
            f"Insufficient stock. Available: {shown} {unit or 'units'}",
            material_id=material_id,
            available=available,
            requested=requested,
        )
        self.available = available
        self.requested = requested


class ConflictError(GiftboxError):
    """The write collides with existing state.

    ``existing`` holds the serialized record that caused the collision (for
    example the active reorder alert), so it can be handed back to the client
    after the transaction has been rolled back.
    """

    code = "CONFLICT"
    status_code = 409

    def __init__(self, message: str, existing: Any = None, **data: Any):
        super().__init__(message, **data)
        self.existing = existing


class StaleVersionError(ConflictError):
    code = "STALE_VERSION"

    def __init__(self, entity_id: str, expected: int, actual: int | None):
        super().__init__(
            "The record was changed by someone else; reload and try again",
            id=entity_id,
            expected_version=expected,
            actual_version=actual,
        )


class DuplicateRequestError(ConflictError):
    code = "DUPLICATE_REQUEST"

    def __init__(self, idempotency_key: str, existing: Any = None):
        super().__init__(
            "A request with this idempotency key was already applied",
            existing=existing,
            idempotency_key=idempotency_key,
        )


class InternalError(GiftboxError):
    code = "INTERNAL"
    status_code = 500
