"""
Custom Exceptions for the License Billing Engine

This module defines the exception taxonomy raised by the billing and
payment-reconciliation services. Every failure is detected before any
partial write and is never retried by the engine itself.
"""

from typing import Any, Dict, List, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the billing engine"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TAX_RULE_INVALID = "TAX_RULE_INVALID"

    # Calculation errors
    CALCULATION_ERROR = "CALCULATION_ERROR"
    AMOUNT_CALCULATION_ERROR = "AMOUNT_CALCULATION_ERROR"
    TOTAL_CALCULATION_ERROR = "TOTAL_CALCULATION_ERROR"
    AMOUNT_CONSISTENCY_ERROR = "AMOUNT_CONSISTENCY_ERROR"

    # State errors
    STATE_ERROR = "STATE_ERROR"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    RECORD_ALREADY_FINAL = "RECORD_ALREADY_FINAL"
    TRANSACTION_ALREADY_FINAL = "TRANSACTION_ALREADY_FINAL"
    IMMUTABLE_FIELD = "IMMUTABLE_FIELD"

    # Sequence errors
    SEQUENCE_ERROR = "SEQUENCE_ERROR"
    DATE_SEQUENCE_INVALID = "DATE_SEQUENCE_INVALID"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class BaseAppException(Exception):
    """
    Base exception class for all billing engine exceptions.

    Provides consistent error handling across the engine with
    structured error information.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format"""
        return {
            "error": {
                "message": self.message,
                "code": self.error_code.value,
                "details": self.details,
                "type": self.__class__.__name__
            }
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


# ========================================
# Validation Exceptions
# ========================================

class ValidationError(BaseAppException):
    """Exception raised when an input field is missing or out of range"""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, List[str]]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        status_code: int = 422
    ):
        details = {"field_errors": field_errors} if field_errors else {}
        super().__init__(message, error_code, details, status_code)
        self.field_errors = field_errors or {}

    @classmethod
    def from_pydantic(cls, exc: Any, message: str = "Validation failed") -> "ValidationError":
        """Build from a pydantic ``ValidationError``"""
        field_errors: Dict[str, List[str]] = {}
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ())) or "__root__"
            field_errors.setdefault(field, []).append(error.get("msg", "invalid value"))
        return cls(message, field_errors=field_errors)


class TaxRuleInvalidError(ValidationError):
    """Exception raised when a tax rule set cannot be applied"""

    def __init__(self, message: str, jurisdiction: Optional[str] = None):
        super().__init__(
            message,
            field_errors={"tax_rules": [message]},
            error_code=ErrorCode.TAX_RULE_INVALID,
        )
        if jurisdiction:
            self.details["jurisdiction"] = jurisdiction
        self.jurisdiction = jurisdiction


# ========================================
# Calculation Exceptions
# ========================================

class CalculationError(BaseAppException):
    """Exception raised when a stored money identity is violated beyond tolerance"""

    def __init__(
        self,
        message: str,
        field: str,
        expected: Any = None,
        actual: Any = None,
        error_code: ErrorCode = ErrorCode.CALCULATION_ERROR,
    ):
        details = {
            "field": field,
            "expected": str(expected) if expected is not None else None,
            "actual": str(actual) if actual is not None else None,
        }
        super().__init__(message, error_code, details, 422)
        self.field = field
        self.expected = expected
        self.actual = actual


class AmountCalculationError(CalculationError):
    """Subtotal does not match its quantity and unit price"""

    def __init__(self, field: str, expected: Any, actual: Any):
        super().__init__(
            f"Amount calculation mismatch on '{field}'",
            field,
            expected,
            actual,
            ErrorCode.AMOUNT_CALCULATION_ERROR,
        )


class TotalCalculationError(CalculationError):
    """Total does not match subtotal plus tax"""

    def __init__(self, field: str, expected: Any, actual: Any):
        super().__init__(
            f"Total calculation mismatch on '{field}'",
            field,
            expected,
            actual,
            ErrorCode.TOTAL_CALCULATION_ERROR,
        )


class AmountConsistencyError(CalculationError):
    """Local-currency amount drifts from its USD counterpart"""

    def __init__(self, field: str, expected: Any, actual: Any):
        super().__init__(
            f"Local amount '{field}' is inconsistent with the exchange rate used",
            field,
            expected,
            actual,
            ErrorCode.AMOUNT_CONSISTENCY_ERROR,
        )


# ========================================
# State Exceptions
# ========================================

class StateError(BaseAppException):
    """Exception raised on an invalid status change or a write to a final record"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.STATE_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details, 409)


class InvalidStatusTransitionError(StateError):
    """The requested edge is absent from the transition table"""

    def __init__(self, entity: str, entity_id: Any, current: Any, target: Any):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            f"{entity} {entity_id} cannot move from {current_value} to {target_value}",
            ErrorCode.INVALID_STATUS_TRANSITION,
            {
                "entity": entity,
                "entity_id": str(entity_id),
                "current_status": current_value,
                "target_status": target_value,
            },
        )
        self.current = current
        self.target = target


class RecordFinalError(StateError):
    """The record has reached a terminal status"""

    def __init__(
        self,
        entity: str,
        entity_id: Any,
        status: Any,
        error_code: ErrorCode = ErrorCode.RECORD_ALREADY_FINAL,
    ):
        status_value = getattr(status, "value", status)
        super().__init__(
            f"{entity} {entity_id} is already final ({status_value})",
            error_code,
            {"entity": entity, "entity_id": str(entity_id), "status": status_value},
        )
        self.status = status


class TransactionAlreadyFinalError(RecordFinalError):
    """A payment transaction in a terminal status cannot change"""

    def __init__(self, entity_id: Any, status: Any):
        super().__init__(
            "PaymentTransaction",
            entity_id,
            status,
            ErrorCode.TRANSACTION_ALREADY_FINAL,
        )


class ImmutableFieldError(StateError):
    """Exception raised when a write touches a read-only or write-once field"""

    def __init__(self, entity: str, fields: List[str]):
        super().__init__(
            f"{entity} fields are not writable: {', '.join(sorted(fields))}",
            ErrorCode.IMMUTABLE_FIELD,
            {"entity": entity, "fields": sorted(fields)},
        )
        self.fields = sorted(fields)


# ========================================
# Referential Exceptions
# ========================================

class ReferentialError(BaseAppException):
    """Exception raised when a referenced record does not exist"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details, 404)


class ResourceNotFoundError(ReferentialError):
    """Exception raised when a requested resource is not found"""

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            ErrorCode.RESOURCE_NOT_FOUND,
            {"resource_type": resource_type, "resource_id": str(resource_id)},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# ========================================
# Sequence Exceptions
# ========================================

class SequenceError(BaseAppException):
    """Exception raised when timestamps violate their required ordering"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.SEQUENCE_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details, 422)


class DateSequenceInvalidError(SequenceError):
    """``later`` must not precede ``earlier``"""

    def __init__(self, earlier_field: str, earlier: Any, later_field: str, later: Any):
        super().__init__(
            f"'{later_field}' ({later}) must not precede '{earlier_field}' ({earlier})",
            ErrorCode.DATE_SEQUENCE_INVALID,
            {
                "earlier_field": earlier_field,
                "earlier": str(earlier),
                "later_field": later_field,
                "later": str(later),
            },
        )
        self.earlier_field = earlier_field
        self.later_field = later_field


# ========================================
# Persistence Exceptions
# ========================================

class RepositoryError(BaseAppException):
    """Exception raised when a store operation fails"""

    def __init__(
        self,
        message: str = "Repository operation failed",
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details, 500)


class AlreadyExistsError(RepositoryError):
    """Exception raised when an insert violates a uniqueness constraint"""

    def __init__(self, entity: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"{entity} already exists",
            ErrorCode.DUPLICATE_ENTRY,
            details,
        )
        self.status_code = 409
        self.entity = entity


# ========================================
# Configuration Exceptions
# ========================================

class ConfigurationError(BaseAppException):
    """Exception raised for configuration errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details, 500)


__all__ = [
    "ErrorCode",
    "BaseAppException",
    "ValidationError",
    "TaxRuleInvalidError",
    "CalculationError",
    "AmountCalculationError",
    "TotalCalculationError",
    "AmountConsistencyError",
    "StateError",
    "InvalidStatusTransitionError",
    "RecordFinalError",
    "TransactionAlreadyFinalError",
    "ImmutableFieldError",
    "ReferentialError",
    "ResourceNotFoundError",
    "SequenceError",
    "DateSequenceInvalidError",
    "RepositoryError",
    "AlreadyExistsError",
    "ConfigurationError",
]
