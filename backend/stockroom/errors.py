from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class OrderingError(Exception):
    """Base class for every failure surfaced by the fulfillment services."""

    code = "ordering_error"
    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        entity_id: Optional[str] = None,
        detail: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id
        self.detail = detail or []

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.entity_id is not None:
            payload["entity_id"] = self.entity_id
        if self.detail:
            payload["detail"] = self.detail
        return payload


class ValidationError(OrderingError):
    """Malformed input: empty item list, bad quantity, missing prefix/reference."""

    code = "validation_error"
    status_code = 400

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        detail = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "reason": err.get("msg", "invalid"),
            }
            for err in exc.errors()
        ]
        return cls("Invalid request payload.", detail=detail)


class NotFoundError(OrderingError):
    """Product, prefix, preset or order missing or owned by someone else."""

    code = "not_found"
    status_code = 404


class ArchivedProductError(OrderingError):
    code = "archived_product"
    status_code = 409


class InvalidCompositionError(OrderingError):
    """A bundle references a non-simple, archived or missing product, or itself."""

    code = "invalid_composition"
    status_code = 400


class InsufficientStockError(OrderingError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id: str, *, required: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id}",
            entity_id=product_id,
            detail=[{"field": "quantity", "reason": f"required {required}, available {available}"}],
        )
        self.product_id = product_id
        self.required = required
        self.available = available


class DuplicateReferenceError(OrderingError):
    code = "duplicate_reference"
    status_code = 409

    def __init__(self, reference: str) -> None:
        super().__init__(f"Reference already exists: {reference}", entity_id=reference)
        self.reference = reference


class InvalidStateTransitionError(OrderingError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, entity_id: str, *, from_state: str, to_state: str) -> None:
        super().__init__(
            f"Cannot transition from {from_state} to {to_state}",
            entity_id=entity_id,
            detail=[{"field": "status", "reason": f"Cannot transition from {from_state} to {to_state}"}],
        )
        self.from_state = from_state
        self.to_state = to_state
