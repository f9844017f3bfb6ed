"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the error taxonomy shared by the ledger, pricing
and fraud detection components.

- Every error is raised synchronously
- Every error aborts the whole operation (no partial state)
- No automatic retry anywhere; callers resubmit

============================================================
EXCEPTION HIERARCHY
============================================================
SupplyChainError (base)
├── NotFoundError
│   ├── ProductNotFoundError
│   ├── ProducerNotRegisteredError
│   └── RecordNotFoundError
├── UnauthorizedError
├── ValidationError
│   ├── InvalidQuantityError
│   ├── InvalidPriceError
│   ├── InvalidRatingError
│   ├── InvalidQualityScoreError
│   ├── ExceedsMaxContentHashesError
│   └── InvalidConfigurationError
├── BusinessRuleError
│   ├── InsufficientPriceError
│   └── PriceTooVolatileError
├── StateConflictError
│   ├── InvalidStageTransitionError
│   ├── AlreadyRegisteredError
│   ├── AlreadyResolvedError
│   ├── RoleConflictError
│   └── NotBlacklistedError
├── SystemPausedError
└── ReentrantCallError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# ERROR CATEGORIES
# ============================================================

class ErrorCategory(Enum):
    """Error category classification."""

    NOT_FOUND = "not_found"
    """Unknown product or record id."""

    AUTHORIZATION = "authorization"
    """Caller lacks the required role or ownership."""

    VALIDATION = "validation"
    """Zero/out-of-range value or bound exceeded."""

    BUSINESS_RULE = "business_rule"
    """Price below floor, volatility exceeded."""

    STATE_CONFLICT = "state_conflict"
    """Already resolved, already active, duplicate registration."""

    CIRCUIT_BREAKER = "circuit_breaker"
    """Rejected by the pause flag or the re-entrancy guard."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class SupplyChainError(Exception):
    """
    Base exception for all supply-chain core errors.

    All exceptions carry:
    - category: for callers deciding how to react
    - context: identifiers involved, for logs and notifications
    - timestamp: when the error occurred
    """

    category: ErrorCategory = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "category": self.category.value,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================
# NOT FOUND
# ============================================================

class NotFoundError(SupplyChainError):
    category = ErrorCategory.NOT_FOUND


class ProductNotFoundError(NotFoundError):
    """Product id is unknown, erased, or the sentinel 0."""

    def __init__(self, product_id: int):
        super().__init__(
            f"Product not found: {product_id}",
            context={"product_id": product_id},
        )
        self.product_id = product_id


class ProducerNotRegisteredError(NotFoundError):
    """Producer has no profile, or the profile is inactive."""

    def __init__(self, actor: str, reason: str = "not registered"):
        super().__init__(
            f"Producer {actor} {reason}",
            context={"actor": actor, "reason": reason},
        )
        self.actor = actor


class RecordNotFoundError(NotFoundError):
    """Anomaly, violation, validation or pattern record is unknown."""

    def __init__(self, kind: str, record_id: Any):
        super().__init__(
            f"{kind} not found: {record_id}",
            context={"kind": kind, "record_id": record_id},
        )
        self.kind = kind
        self.record_id = record_id


# ============================================================
# AUTHORIZATION
# ============================================================

class UnauthorizedError(SupplyChainError):
    """Caller lacks the role or ownership the action requires."""

    category = ErrorCategory.AUTHORIZATION

    def __init__(self, actor: str, action: str, reason: str):
        super().__init__(
            f"{actor} is not authorized to {action}: {reason}",
            context={"actor": actor, "action": action, "reason": reason},
        )
        self.actor = actor
        self.action = action
        self.reason = reason


# ============================================================
# VALIDATION
# ============================================================

class ValidationError(SupplyChainError):
    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        actual: Optional[Any] = None,
        limit: Optional[Any] = None,
    ):
        context: Dict[str, Any] = {}
        if field:
            context["field"] = field
        if actual is not None:
            context["actual"] = actual
        if limit is not None:
            context["limit"] = limit
        super().__init__(message, context=context)


class InvalidQuantityError(ValidationError):
    def __init__(self, quantity: int):
        super().__init__("Quantity must be positive", field="quantity", actual=quantity)


class InvalidPriceError(ValidationError):
    def __init__(self, price: int, field: str = "price"):
        super().__init__(f"{field} must be positive", field=field, actual=price)


class InvalidRatingError(ValidationError):
    def __init__(self, score: int, max_rating: int):
        super().__init__(
            f"Rating {score} exceeds maximum {max_rating}",
            field="score",
            actual=score,
            limit=max_rating,
        )


class InvalidQualityScoreError(ValidationError):
    def __init__(self, score: int, max_score: int):
        super().__init__(
            f"Quality score {score} outside 0..{max_score}",
            field="quality_score",
            actual=score,
            limit=max_score,
        )


class ExceedsMaxContentHashesError(ValidationError):
    def __init__(self, count: int, limit: int, field: str = "content_hashes"):
        super().__init__(
            f"{field} would hold {count} entries, limit is {limit}",
            field=field,
            actual=count,
            limit=limit,
        )


class InvalidConfigurationError(ValidationError):
    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {reason}",
            field=key,
            actual=value,
        )


# ============================================================
# BUSINESS RULES
# ============================================================

class BusinessRuleError(SupplyChainError):
    category = ErrorCategory.BUSINESS_RULE


class InsufficientPriceError(BusinessRuleError):
    """Proposed price is strictly below the computed minimum."""

    def __init__(self, product_id: int, proposed_price: int, minimum_price: int):
        super().__init__(
            f"Price {proposed_price} below minimum {minimum_price} for product {product_id}",
            context={
                "product_id": product_id,
                "proposed_price": proposed_price,
                "minimum_price": minimum_price,
            },
        )
        self.minimum_price = minimum_price


class PriceTooVolatileError(BusinessRuleError):
    """Proposed price deviates from the market reference by too much."""

    def __init__(
        self,
        product_id: int,
        proposed_price: int,
        market_price: int,
        deviation_bp: int,
        threshold_bp: int,
    ):
        super().__init__(
            f"Price {proposed_price} deviates {deviation_bp}bp from market "
            f"{market_price} (limit {threshold_bp}bp)",
            context={
                "product_id": product_id,
                "proposed_price": proposed_price,
                "market_price": market_price,
                "deviation_bp": deviation_bp,
                "threshold_bp": threshold_bp,
            },
        )
        self.deviation_bp = deviation_bp


# ============================================================
# STATE CONFLICTS
# ============================================================

class StateConflictError(SupplyChainError):
    category = ErrorCategory.STATE_CONFLICT


class InvalidStageTransitionError(StateConflictError):
    def __init__(self, product_id: int, from_stage: Any, to_stage: Any):
        super().__init__(
            f"Product {product_id} cannot move from {from_stage} back to {to_stage}",
            context={
                "product_id": product_id,
                "from_stage": str(from_stage),
                "to_stage": str(to_stage),
            },
        )


class AlreadyRegisteredError(StateConflictError):
    def __init__(self, actor: str):
        super().__init__(
            f"Producer {actor} is already registered and active",
            context={"actor": actor},
        )


class AlreadyResolvedError(StateConflictError):
    def __init__(self, kind: str, record_id: int):
        super().__init__(
            f"{kind} {record_id} is already resolved",
            context={"kind": kind, "record_id": record_id},
        )


class RoleConflictError(StateConflictError):
    def __init__(self, actor: str, role: Any, reason: str):
        super().__init__(
            f"Role {role} for {actor}: {reason}",
            context={"actor": actor, "role": str(role), "reason": reason},
        )


class NotBlacklistedError(StateConflictError):
    def __init__(self, actor: str):
        super().__init__(f"Actor {actor} is not blacklisted", context={"actor": actor})


# ============================================================
# CIRCUIT BREAKER
# ============================================================

class SystemPausedError(SupplyChainError):
    """Every mutating entry point fails uniformly while paused."""

    category = ErrorCategory.CIRCUIT_BREAKER

    def __init__(self, operation: str):
        super().__init__(
            f"System is paused, rejected {operation}",
            context={"operation": operation},
        )


class ReentrantCallError(SupplyChainError):
    category = ErrorCategory.CIRCUIT_BREAKER

    def __init__(self, operation: str, in_flight: str):
        super().__init__(
            f"Re-entrant call to {operation} while {in_flight} is in flight",
            context={"operation": operation, "in_flight": in_flight},
        )


__all__ = [
    "ErrorCategory",
    "SupplyChainError",
    "NotFoundError",
    "ProductNotFoundError",
    "ProducerNotRegisteredError",
    "RecordNotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "InvalidQuantityError",
    "InvalidPriceError",
    "InvalidRatingError",
    "InvalidQualityScoreError",
    "ExceedsMaxContentHashesError",
    "InvalidConfigurationError",
    "BusinessRuleError",
    "InsufficientPriceError",
    "PriceTooVolatileError",
    "StateConflictError",
    "InvalidStageTransitionError",
    "AlreadyRegisteredError",
    "AlreadyResolvedError",
    "RoleConflictError",
    "NotBlacklistedError",
    "SystemPausedError",
    "ReentrantCallError",
]
