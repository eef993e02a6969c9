import logging
from decimal import Decimal
from typing import Dict, Any, List

from django.db import transaction
from django.utils import timezone

from catalog.models import RawMaterial, Section
from ledger.models import SectionConsumption, SectionInventory, StockMovement
from ledger.services.base_service import (
    BaseService, ServiceError, service_operation, paginate_queryset,
    ValidationError, NotFoundError, InsufficientSectionStockError,
    parse_quantity, format_quantity,
)
from ledger.services.catalog_service import CatalogLookup
from ledger.services.ledger_service import StockLedgerService
from ledger.services.section_service import SectionInventoryService
from ledger.services.sequence_service import ReferenceSequencer
from ledger.services.settings_service import LedgerSettingsService
from ledger.services.unit_service import get_pack_info, describe_base_quantity, serialize_quantity

logger = logging.getLogger(__name__)


class ConsumptionService(BaseService):
    """
    Debits section inventory and records who used what, when and for which order.

    Each consumption also emits OUT movements against the material's lots.
    When no lot can carry them, LedgerSettings.require_ledger_movement decides:
    fail the whole consumption, or keep it flagged ledger_reconciled=False.
    """

    model = SectionConsumption

    def __init__(self, using: str = "default", catalog: CatalogLookup = None,
                 ledger: StockLedgerService = None, sections: SectionInventoryService = None,
                 sequencer: ReferenceSequencer = None, ledger_settings: LedgerSettingsService = None):
        super().__init__(using)
        self.catalog = catalog or CatalogLookup(using)
        self.sequencer = sequencer or ReferenceSequencer(using)
        self.ledger_settings = ledger_settings or LedgerSettingsService(using)
        self.ledger = ledger or StockLedgerService(
            using, catalog=self.catalog, sequencer=self.sequencer, ledger_settings=self.ledger_settings
        )
        self.sections = sections or SectionInventoryService(using, catalog=self.catalog, ledger=self.ledger)

    def serialize(self, consumption: SectionConsumption) -> Dict[str, Any]:
        material = consumption.raw_material
        data = {
            "id": consumption.id,
            "uuid": str(consumption.uuid),
            "section_id": consumption.section_id,
            "section": {
                "id": consumption.section.id,
                "name": consumption.section.name,
            },
            "raw_material_id": consumption.raw_material_id,
            "raw_material": {
                "id": material.id,
                "name": material.name,
                "unit": material.unit,
            },
            "consumed_by_id": consumption.consumed_by_id,
            "consumed_date": consumption.consumed_date.isoformat() if consumption.consumed_date else None,
            "reason": consumption.reason,
            "order_id": consumption.order_id,
            "notes": consumption.notes,
            "ledger_reconciled": consumption.ledger_reconciled,
        }
        data.update(serialize_quantity(consumption.quantity, material))
        return data

    def _record(self,
                section: Section,
                material: RawMaterial,
                quantity: Decimal,
                consumed_by=None,
                reason: str = "",
                order_id: str = None,
                notes: str = "") -> Dict[str, Any]:
        row = (
            SectionInventory.objects.using(self.using)
            .select_for_update()
            .filter(section=section, raw_material=material)
            .first()
        )
        if row is None:
            raise NotFoundError(
                "SectionInventory", f"section {section.id} / raw material {material.id}"
            )
        if row.quantity < quantity:
            raise InsufficientSectionStockError(material.name, section.name, quantity, row.quantity)

        order_id = order_id or self.sequencer.next_reference()
        text = notes or reason or "Consumption"
        if get_pack_info(material):
            text = f"{text} ({describe_base_quantity(quantity, material)})"

        row.quantity -= quantity
        row.last_updated = timezone.now()
        row.save(using=self.using)

        movements = []
        reconciled = True
        try:
            with transaction.atomic(using=self.using):
                movements = self.ledger.record_for_material(
                    material, StockMovement.MovementType.OUT, quantity,
                    from_section=section,
                    reason=text,
                    performed_by=consumed_by,
                    reference_id=order_id,
                )
        except ServiceError as e:
            if self.ledger_settings.requires_ledger_movement():
                raise
            reconciled = False
            logger.warning(
                "Consumption %s of %s in %s kept without a ledger movement: %s",
                order_id, material.name, section.name, e.message,
                extra={"error_code": e.code},
            )

        consumption = SectionConsumption(
            section=section,
            raw_material=material,
            quantity=quantity,
            consumed_by=consumed_by,
            reason=reason or "",
            order_id=order_id,
            notes=text,
            ledger_reconciled=reconciled,
        )
        consumption.save(using=self.using)

        logger.info(
            "Consumed %s of %s in %s (%s)",
            format_quantity(quantity), material.name, section.name, order_id,
        )
        return {
            "consumption": self.serialize(consumption),
            "inventory": self.sections.serialize(row),
            "movements": [self.ledger.serialize_movement(m) for m in movements],
            "ledger_reconciled": reconciled,
        }

    @service_operation("Consumption recorded successfully")
    def consume(self,
                section_id: int,
                raw_material_id: int,
                quantity,
                consumed_by=None,
                reason: str = "",
                order_id: str = None,
                notes: str = "") -> Dict[str, Any]:
        """Debit base-unit quantity from a section's allocation."""
        section = self.catalog.get_section(section_id)
        material = self.catalog.get_material(raw_material_id)
        quantity = parse_quantity(quantity, "quantity", allow_zero=False)
        return self._record(
            section, material, quantity,
            consumed_by=consumed_by,
            reason=reason,
            order_id=order_id,
            notes=notes,
        )

    @service_operation("Consumption recorded successfully")
    def consume_many(self,
                     section_id: int,
                     lines: List[Dict[str, Any]],
                     consumed_by=None,
                     reason: str = "Sale",
                     order_id: str = None) -> Dict[str, Any]:
        """
        Record several lines under one order id, all or nothing.

        lines: [{"raw_material_id": 1, "quantity": "2", "notes": "..."}, ...]
        with quantities in base units.
        """
        if not lines:
            raise ValidationError("At least one consumption line is required", "lines")

        section = self.catalog.get_section(section_id)
        order_id = order_id or self.sequencer.next_reference()

        results = []
        for index, line in enumerate(lines):
            try:
                if not isinstance(line, dict):
                    raise ValidationError("Each consumption line must be a mapping", "lines")
                material = self.catalog.get_material(line.get("raw_material_id"))
                quantity = parse_quantity(line.get("quantity"), "quantity", allow_zero=False)
                results.append(self._record(
                    section, material, quantity,
                    consumed_by=consumed_by,
                    reason=reason,
                    order_id=order_id,
                    notes=line.get("notes", ""),
                ))
            except ServiceError as e:
                e.details["line"] = index
                raise

        return {
            "order_id": order_id,
            "lines": results,
            "count": len(results),
            "ledger_reconciled": all(r["ledger_reconciled"] for r in results),
        }

    def _filtered(self, section_id: int = None, raw_material_id: int = None,
                  date_from=None, date_to=None):
        queryset = self.objects.select_related("section", "raw_material")
        if section_id:
            queryset = queryset.filter(section_id=section_id)
        if raw_material_id:
            queryset = queryset.filter(raw_material_id=raw_material_id)
        if date_from:
            queryset = queryset.filter(consumed_date__date__gte=date_from)
        if date_to:
            queryset = queryset.filter(consumed_date__date__lte=date_to)
        return queryset.order_by("-consumed_date", "-id")

    @service_operation("Consumption history retrieved")
    def history(self,
                section_id: int,
                raw_material_id: int = None,
                date_from=None,
                date_to=None,
                page: int = 1,
                per_page: int = 20) -> Dict[str, Any]:
        section = self.catalog.get_section(section_id, active_only=False)
        queryset = self._filtered(section.id, raw_material_id, date_from, date_to)
        consumptions, pagination = paginate_queryset(queryset, page, per_page)
        return {
            "section": self.catalog.serialize_section(section),
            "consumptions": [self.serialize(c) for c in consumptions],
            "pagination": pagination,
        }

    @service_operation("Unreconciled consumptions retrieved")
    def unreconciled(self, section_id: int = None, page: int = 1, per_page: int = 20) -> Dict[str, Any]:
        queryset = self._filtered(section_id).filter(ledger_reconciled=False)
        consumptions, pagination = paginate_queryset(queryset, page, per_page)
        return {
            "consumptions": [self.serialize(c) for c in consumptions],
            "pagination": pagination,
        }

    def unreconciled_count(self) -> int:
        return self.objects.filter(ledger_reconciled=False).count()
