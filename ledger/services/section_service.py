import logging
from decimal import Decimal
from typing import Dict, Any, List

from django.utils import timezone

from catalog.models import RawMaterial, Section
from ledger.models import SectionInventory, StockMovement
from ledger.services.base_service import (
    BaseService, service_operation,
    ValidationError, NotFoundError, InsufficientStockError, InsufficientSectionStockError,
    parse_quantity, format_quantity,
)
from ledger.services.catalog_service import CatalogLookup
from ledger.services.ledger_service import StockLedgerService
from ledger.services.unit_service import (
    get_pack_info, to_base, display_quantity, describe_conversion, describe_base_quantity,
    serialize_quantity,
)

logger = logging.getLogger(__name__)

MovementType = StockMovement.MovementType


def _with_conversion(text: str, note: str, material: RawMaterial) -> str:
    if get_pack_info(material) is None:
        return text
    return f"{text} ({note})"


class SectionInventoryService(BaseService):
    """
    Stock allocated to sections.

    Lock order is raw material, then section inventory rows, then stock
    entries (taken during lot allocation). consume() starts at the inventory
    row and follows the same order from there.
    """

    model = SectionInventory

    def __init__(self, using: str = "default", catalog: CatalogLookup = None,
                 ledger: StockLedgerService = None):
        super().__init__(using)
        self.catalog = catalog or CatalogLookup(using)
        self.ledger = ledger or StockLedgerService(using, catalog=self.catalog)

    def serialize(self, row: SectionInventory) -> Dict[str, Any]:
        material = row.raw_material
        data = {
            "id": row.id,
            "uuid": str(row.uuid),
            "section_id": row.section_id,
            "section": {
                "id": row.section.id,
                "name": row.section.name,
                "type": row.section.type,
            },
            "raw_material_id": row.raw_material_id,
            "raw_material": {
                "id": material.id,
                "name": material.name,
                "unit": material.unit,
            },
            "reserved_quantity": format_quantity(row.reserved_quantity),
            "min_level": format_quantity(row.min_level) if row.min_level is not None else None,
            "max_level": format_quantity(row.max_level) if row.max_level is not None else None,
            "last_updated": row.last_updated.isoformat() if row.last_updated else None,
        }
        data.update(serialize_quantity(row.quantity, material))
        return data

    def _check_available(self, material: RawMaterial, base_quantity: Decimal):
        level = self.ledger.compute_level(material)
        if level.available < base_quantity:
            if get_pack_info(material) is None:
                requested, available = format_quantity(base_quantity), format_quantity(level.available)
            else:
                requested = str(display_quantity(base_quantity, material))
                available = str(display_quantity(level.available, material))
            raise InsufficientStockError(material.name, requested, available, material.unit)

    def _lock_row(self, section: Section, material: RawMaterial) -> SectionInventory:
        row, created = (
            SectionInventory.objects.using(self.using)
            .select_for_update()
            .get_or_create(
                section=section,
                raw_material=material,
                defaults={"quantity": Decimal("0"), "reserved_quantity": Decimal("0")},
            )
        )
        return row

    def _get_row(self, inventory_id: int) -> SectionInventory:
        row = self.get_by_id(inventory_id)
        if row is None:
            raise NotFoundError("SectionInventory", inventory_id)
        return row

    @service_operation("Stock assigned to section successfully")
    def assign(self,
               section_id: int,
               raw_material_id: int,
               quantity,
               assigned_by=None,
               notes: str = "",
               reference_id: str = None) -> Dict[str, Any]:
        """Allocate stock to a section. quantity is in purchase units."""
        section = self.catalog.get_section(section_id)
        material = self.catalog.get_material(raw_material_id, lock=True)
        purchase_quantity = parse_quantity(quantity, "quantity", allow_zero=False)
        base_quantity = to_base(purchase_quantity, material)

        self._check_available(material, base_quantity)

        row = self._lock_row(section, material)
        movements = self.ledger.record_for_material(
            material, MovementType.TRANSFER, base_quantity,
            to_section=section,
            reason=_with_conversion(
                notes or "Stock assigned to section",
                describe_conversion(purchase_quantity, material),
                material,
            ),
            performed_by=assigned_by,
            reference_id=reference_id,
        )

        row.quantity += base_quantity
        row.last_updated = timezone.now()
        row.save(using=self.using)

        logger.info(
            "Assigned %s of %s to %s",
            describe_conversion(purchase_quantity, material), material.name, section.name,
        )
        return {
            "inventory": self.serialize(row),
            "movements": [self.ledger.serialize_movement(m) for m in movements],
            "reference_id": movements[0].reference_id,
        }

    @service_operation("Section inventory updated successfully")
    def update_assignment(self,
                          inventory_id: int,
                          quantity,
                          updated_by=None,
                          notes: str = "") -> Dict[str, Any]:
        """
        Set a section's allocation to an absolute purchase-unit quantity.
        Increases are checked against available stock; a reduction returns the
        difference to the unallocated pool.
        """
        current = self._get_row(inventory_id)
        material = self.catalog.get_material(current.raw_material_id, active_only=False, lock=True)
        row = self.get_or_404(inventory_id, lock=True)
        section = row.section

        purchase_quantity = parse_quantity(quantity, "quantity")
        new_quantity = to_base(purchase_quantity, material)
        delta = new_quantity - row.quantity

        if delta > 0:
            self._check_available(material, delta)

        movements = []
        if delta != 0:
            movements = self.ledger.record_for_material(
                material, MovementType.TRANSFER, abs(delta),
                to_section=section if delta > 0 else None,
                from_section=section if delta < 0 else None,
                reason=_with_conversion(
                    notes or "Section inventory updated",
                    describe_conversion(purchase_quantity, material),
                    material,
                ),
                performed_by=updated_by,
            )

        row.quantity = new_quantity
        row.last_updated = timezone.now()
        row.save(using=self.using)

        logger.info(
            "Section %s allocation of %s set to %s (delta %s)",
            section.name, material.name, format_quantity(new_quantity), format_quantity(delta),
        )
        return {
            "inventory": self.serialize(row),
            "delta": format_quantity(delta),
            "movements": [self.ledger.serialize_movement(m) for m in movements],
        }

    @service_operation("Section inventory removed successfully")
    def remove_assignment(self, inventory_id: int, removed_by=None, notes: str = "") -> Dict[str, Any]:
        row = self.get_or_404(inventory_id, lock=True)
        material = row.raw_material
        section = row.section
        quantity = row.quantity

        movements = []
        if quantity > 0:
            movements = self.ledger.record_for_material(
                material, MovementType.TRANSFER, quantity,
                from_section=section,
                reason=_with_conversion(
                    notes or "Stock removed from section",
                    describe_base_quantity(quantity, material),
                    material,
                ),
                performed_by=removed_by,
            )

        row.delete(using=self.using)

        logger.info(
            "Removed %s of %s from %s", format_quantity(quantity), material.name, section.name,
        )
        return {
            "id": inventory_id,
            "section_id": section.id,
            "raw_material_id": material.id,
            "removed_quantity": format_quantity(quantity),
            "movements": [self.ledger.serialize_movement(m) for m in movements],
        }

    @service_operation("Stock transferred between sections")
    def transfer(self,
                 from_section_id: int,
                 to_section_id: int,
                 raw_material_id: int,
                 quantity,
                 performed_by=None,
                 notes: str = "") -> Dict[str, Any]:
        """Move allocated stock between sections. quantity is in base units."""
        if from_section_id == to_section_id:
            raise ValidationError("Source and destination sections must differ", "to_section_id")

        source_section = self.catalog.get_section(from_section_id)
        target_section = self.catalog.get_section(to_section_id)
        material = self.catalog.get_material(raw_material_id)
        base_quantity = parse_quantity(quantity, "quantity", allow_zero=False)

        rows = {
            r.section_id: r
            for r in SectionInventory.objects.using(self.using)
            .select_for_update()
            .filter(raw_material=material, section_id__in=[from_section_id, to_section_id])
            .order_by("section_id")
        }
        source = rows.get(source_section.id)
        if source is None:
            raise NotFoundError(
                "SectionInventory", f"section {source_section.id} / raw material {material.id}"
            )
        if source.quantity < base_quantity:
            raise InsufficientSectionStockError(
                material.name, source_section.name, base_quantity, source.quantity
            )

        movements = self.ledger.record_for_material(
            material, MovementType.TRANSFER, base_quantity,
            from_section=source_section,
            to_section=target_section,
            reason=_with_conversion(
                notes or f"Transfer {source_section.name} -> {target_section.name}",
                describe_base_quantity(base_quantity, material),
                material,
            ),
            performed_by=performed_by,
        )

        now = timezone.now()
        source.quantity -= base_quantity
        source.last_updated = now
        source.save(using=self.using)

        target = rows.get(target_section.id) or self._lock_row(target_section, material)
        target.quantity += base_quantity
        target.last_updated = now
        target.save(using=self.using)

        logger.info(
            "Transferred %s of %s from %s to %s",
            format_quantity(base_quantity), material.name, source_section.name, target_section.name,
        )
        return {
            "source": self.serialize(source),
            "target": self.serialize(target),
            "movements": [self.ledger.serialize_movement(m) for m in movements],
        }

    def section_rows(self, section_id: int) -> List[SectionInventory]:
        return list(
            SectionInventory.objects.using(self.using)
            .filter(section_id=section_id)
            .select_related("section", "raw_material")
            .order_by("raw_material__name")
        )

    @service_operation("Section inventory retrieved")
    def get_section_inventory(self, section_id: int) -> Dict[str, Any]:
        section = self.catalog.get_section(section_id, active_only=False)
        rows = self.section_rows(section.id)
        return {
            "section": self.catalog.serialize_section(section),
            "inventory": [self.serialize(r) for r in rows],
            "count": len(rows),
        }
