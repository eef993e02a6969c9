import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import wraps
from typing import Dict, Any, Optional, List, Tuple

from django.db import transaction
from django.db.models import Model

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, details: Dict = None, code: str = "VALIDATION_ERROR"):
        details = dict(details or {})
        if field:
            details.setdefault("field", field)
        super().__init__(message, code, details)
        self.field = field


class InvalidQuantityError(ValidationError):
    def __init__(self, field: str, value: Any, reason: str = "must be a non-negative number"):
        super().__init__(
            f"Invalid {field}: {value!r} {reason}",
            field,
            {"value": str(value)},
            code="INVALID_QUANTITY",
        )


class NotFoundError(ServiceError):
    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier)}
        )


class BusinessRuleError(ServiceError):
    def __init__(self, message: str, rule: str = None, code: str = "BUSINESS_RULE_VIOLATION", details: Dict = None):
        details = dict(details or {})
        details["rule"] = rule
        super().__init__(message, code, details)
        self.rule = rule


class ConflictingDeleteError(BusinessRuleError):
    def __init__(self, resource: str, identifier: Any, dependents: int):
        super().__init__(
            f"Cannot delete {resource} {identifier}: {dependents} movement(s) still reference it",
            "delete_with_movements",
            code="CONFLICTING_DELETE",
            details={"resource": resource, "identifier": str(identifier), "dependents": dependents},
        )


class InsufficientStockError(ServiceError):
    def __init__(self, item_name: str, required: str, available: str, unit: str = ""):
        suffix = f" {unit}" if unit else ""
        super().__init__(
            f"Insufficient stock available for {item_name}. "
            f"Requested: {required}{suffix}, Available: {available}{suffix}",
            "INSUFFICIENT_STOCK",
            {"item": item_name, "required": str(required), "available": str(available), "unit": unit}
        )


class InsufficientSectionStockError(ServiceError):
    def __init__(self, item_name: str, section_name: str, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient stock of {item_name} in {section_name}. "
            f"Available: {format_quantity(available)}, Requested: {format_quantity(required)}",
            "INSUFFICIENT_SECTION_STOCK",
            {
                "item": item_name,
                "section": section_name,
                "required": format_quantity(required),
                "available": format_quantity(available),
            }
        )


class NoAvailableEntryError(ServiceError):
    def __init__(self, item_name: str, required: Decimal, allocatable: Decimal):
        super().__init__(
            f"No stock entry can cover {format_quantity(required)} of {item_name}: "
            f"only {format_quantity(allocatable)} remains across its entries",
            "NO_AVAILABLE_ENTRY",
            {
                "item": item_name,
                "required": format_quantity(required),
                "allocatable": format_quantity(allocatable),
            }
        )


def success_response(data: Any = None, message: str = "Success") -> Dict:
    return {"success": True, "message": message, "data": data}


def error_response(message: str, code: str = "ERROR", details: Dict = None) -> Dict:
    return {
        "success": False,
        "data": None,
        "message": message,
        "error_code": code,
        "details": details or {}
    }


def service_operation(message: str = "Success"):
    """
    Wrap a public service method: run it in one transaction on the service's
    database and turn a raised ServiceError into an error_response.

    The error is converted outside the atomic block, so every write made by the
    failing call is rolled back before the caller sees the result.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                with transaction.atomic(using=self.using):
                    data = func(self, *args, **kwargs)
            except ServiceError as e:
                logger.warning(
                    "%s.%s failed: %s",
                    type(self).__name__, func.__name__, e.message,
                    extra={"error_code": e.code, "details": e.details},
                )
                return error_response(e.message, e.code, e.details)
            return success_response(data, message)
        return wrapper
    return decorator


def paginate_queryset(queryset, page: int = 1, per_page: int = 20) -> Tuple[List, Dict]:
    page = max(1, page)
    per_page = min(max(1, per_page), 100)

    total = queryset.count()
    total_pages = (total + per_page - 1) // per_page

    offset = (page - 1) * per_page
    items = list(queryset[offset:offset + per_page])

    return items, {
        "page": page,
        "per_page": per_page,
        "total_items": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }


def to_decimal(value: Any, default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def parse_quantity(value: Any, field: str = "quantity", allow_zero: bool = True) -> Decimal:
    """
    Strict counterpart of to_decimal for ledger inputs.
    Rejects missing, non-numeric, non-finite and negative values instead of
    defaulting them.
    """
    if value is None or isinstance(value, bool):
        raise InvalidQuantityError(field, value, "is required and must be numeric")
    try:
        quantity = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidQuantityError(field, value, "is not a number")
    if not quantity.is_finite():
        raise InvalidQuantityError(field, value, "must be a finite number")
    if quantity < 0:
        raise InvalidQuantityError(field, value, "cannot be negative")
    if quantity == 0 and not allow_zero:
        raise InvalidQuantityError(field, value, "must be greater than zero")
    return quantity


def round_decimal(value: Decimal, places: int = 4) -> Decimal:
    if value is None:
        return Decimal("0")
    quantize_str = "0." + "0" * places if places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def format_quantity(value: Optional[Decimal]) -> str:
    """240.000000 -> '240', 0.500000 -> '0.5'."""
    if value is None:
        return "0"
    value = Decimal(value)
    if value == 0:
        return "0"
    return f"{value.normalize():f}"


class BaseService:
    model = None

    def __init__(self, using: str = "default"):
        self.using = using

    @property
    def objects(self):
        return self.model.objects.using(self.using)

    def get_by_id(self, id: int, lock: bool = False) -> Optional[Model]:
        queryset = self.objects.select_for_update() if lock else self.objects
        try:
            return queryset.get(id=id)
        except (self.model.DoesNotExist, ValueError, TypeError):
            return None

    def get_by_uuid(self, uuid_str: str) -> Optional[Model]:
        try:
            return self.objects.get(uuid=uuid_str)
        except (self.model.DoesNotExist, ValueError):
            return None

    def get_or_404(self, id: int, lock: bool = False) -> Model:
        obj = self.get_by_id(id, lock=lock)
        if not obj:
            raise NotFoundError(self.model.__name__, id)
        return obj

    def exists(self, id: int) -> bool:
        return self.objects.filter(id=id).exists()

    def get_active(self):
        if hasattr(self.model, 'is_active'):
            return self.objects.filter(is_active=True)
        return self.objects.all()
