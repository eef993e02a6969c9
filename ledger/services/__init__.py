"""
Ledger Services - stock entries, movements, section allocation and consumption

Usage:
    from ledger.services import StockLedgerService, SectionInventoryService, ConsumptionService

    ledger = StockLedgerService()

    # Receive 10 packs of 24 at 12.00 per pack -> entry of 240 pieces
    result = ledger.receive(raw_material_id=1, quantity=10, unit_cost="12.00")

    # Allocate 2 packs to the kitchen, then use 24 pieces for an order
    SectionInventoryService().assign(section_id=1, raw_material_id=1, quantity=2)
    ConsumptionService().consume(section_id=1, raw_material_id=1, quantity=24)

Every public write/read returns {"success": bool, "message": str, "data": ...};
failures also carry "error_code" and "details".
"""

# Base utilities
from ledger.services.base_service import (
    ServiceError,
    ValidationError,
    InvalidQuantityError,
    NotFoundError,
    BusinessRuleError,
    ConflictingDeleteError,
    InsufficientStockError,
    InsufficientSectionStockError,
    NoAvailableEntryError,
    success_response,
    error_response,
    service_operation,
    paginate_queryset,
    to_decimal,
    parse_quantity,
    round_decimal,
    format_quantity,
    BaseService,
)

# Unit conversion
from .unit_service import (
    PackInfo,
    get_pack_info,
    to_base,
    to_pack,
    display_quantity,
    describe_conversion,
)

# Settings and reference data
from .settings_service import LedgerSettingsService
from .catalog_service import CatalogLookup
from .sequence_service import ReferenceSequencer

# Core
from .ledger_service import StockLedgerService, StockLevel
from .section_service import SectionInventoryService
from .consumption_service import ConsumptionService


__all__ = [
    # Base
    'ServiceError',
    'ValidationError',
    'InvalidQuantityError',
    'NotFoundError',
    'BusinessRuleError',
    'ConflictingDeleteError',
    'InsufficientStockError',
    'InsufficientSectionStockError',
    'NoAvailableEntryError',
    'success_response',
    'error_response',
    'service_operation',
    'paginate_queryset',
    'to_decimal',
    'parse_quantity',
    'round_decimal',
    'format_quantity',
    'BaseService',

    # Units
    'PackInfo',
    'get_pack_info',
    'to_base',
    'to_pack',
    'display_quantity',
    'describe_conversion',

    # Settings and reference data
    'LedgerSettingsService',
    'CatalogLookup',
    'ReferenceSequencer',

    # Core
    'StockLedgerService',
    'StockLevel',
    'SectionInventoryService',
    'ConsumptionService',
]
