"""
Stock ledger: receipts (stock entries) and the append-only movement log.

Stock levels are never stored. Every figure is derived from entries and
movements each time it is read:

    total_received = sum of entry quantities
    total_used     = OUT movements (+ EXPIRED/DAMAGED when losses count as used)
    on_hand        = total_received - total_used
    allocated      = TRANSFER into sections - TRANSFER out of sections
                     - usage debited from sections
    available      = on_hand - allocated

All quantities are base units.
"""
import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Any, List, Tuple

from django.db.models import F, Q, Sum

from catalog.models import RawMaterial, Section
from ledger.models import StockEntry, StockMovement, LedgerSettings, SectionInventory
from ledger.services.base_service import (
    BaseService, service_operation, paginate_queryset,
    ValidationError, BusinessRuleError, ConflictingDeleteError,
    NoAvailableEntryError, parse_quantity, round_decimal, format_quantity,
)
from ledger.services.catalog_service import CatalogLookup
from ledger.services.sequence_service import ReferenceSequencer
from ledger.services.settings_service import LedgerSettingsService
from ledger.services.unit_service import (
    get_pack_info, to_base, to_pack, describe_conversion, serialize_quantity,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

MovementType = StockMovement.MovementType

# Physically removes stock from a lot, whatever the reporting policy says
DEPLETING_TYPES = (MovementType.OUT, MovementType.EXPIRED, MovementType.DAMAGED)

CONVERSION_NOTE_RE = re.compile(r"\s*\([^()]* = [^()]*, Pack cost: [^()]*\)$")


@dataclass
class StockLevel:
    raw_material: RawMaterial
    total_received: Decimal = ZERO
    total_used: Decimal = ZERO
    allocated: Decimal = ZERO

    @property
    def on_hand(self) -> Decimal:
        return self.total_received - self.total_used

    @property
    def available(self) -> Decimal:
        return self.on_hand - self.allocated

    @property
    def is_low_stock(self) -> bool:
        return self.available <= self.raw_material.min_stock_level


class StockLedgerService(BaseService):
    model = StockEntry

    def __init__(self, using: str = "default", catalog: CatalogLookup = None,
                 sequencer: ReferenceSequencer = None, ledger_settings: LedgerSettingsService = None):
        super().__init__(using)
        self.catalog = catalog or CatalogLookup(using)
        self.sequencer = sequencer or ReferenceSequencer(using)
        self.ledger_settings = ledger_settings or LedgerSettingsService(using)

    # ------------------------------------------------------------------
    # Serializers
    # ------------------------------------------------------------------

    def serialize_entry(self, entry: StockEntry) -> Dict[str, Any]:
        material = entry.raw_material
        data = {
            "id": entry.id,
            "uuid": str(entry.uuid),
            "raw_material_id": entry.raw_material_id,
            "raw_material": {
                "id": material.id,
                "name": material.name,
                "unit": material.unit,
            },
            "unit_cost": str(entry.unit_cost),
            "total_cost": str(entry.total_cost),
            "supplier": entry.supplier,
            "batch_number": entry.batch_number,
            "expiry_date": entry.expiry_date.isoformat() if entry.expiry_date else None,
            "received_date": entry.received_date.isoformat() if entry.received_date else None,
            "received_by_id": entry.received_by_id,
            "notes": entry.notes,
        }
        data.update(serialize_quantity(entry.quantity, material))
        return data

    def serialize_movement(self, movement: StockMovement) -> Dict[str, Any]:
        return {
            "id": movement.id,
            "uuid": str(movement.uuid),
            "stock_entry_id": movement.stock_entry_id,
            "type": movement.type,
            "type_display": movement.get_type_display(),
            "quantity": format_quantity(movement.quantity),
            "from_section_id": movement.from_section_id,
            "to_section_id": movement.to_section_id,
            "reason": movement.reason,
            "performed_by_id": movement.performed_by_id,
            "reference_id": movement.reference_id,
            "created_at": movement.created_at.isoformat() if movement.created_at else None,
        }

    def serialize_level(self, level: StockLevel) -> Dict[str, Any]:
        material = level.raw_material
        data = {
            "raw_material_id": material.id,
            "name": material.name,
            "unit": material.unit,
            "total_received": format_quantity(level.total_received),
            "total_used": format_quantity(level.total_used),
            "on_hand": format_quantity(level.on_hand),
            "allocated": format_quantity(level.allocated),
            "min_stock_level": format_quantity(material.min_stock_level),
            "max_stock_level": format_quantity(material.max_stock_level),
            "is_low_stock": level.is_low_stock,
        }
        data.update(serialize_quantity(level.available, material, prefix="available_"))
        return data

    # ------------------------------------------------------------------
    # Level derivation
    # ------------------------------------------------------------------

    def usage_types(self) -> Tuple[str, ...]:
        if self.ledger_settings.counts_losses_as_used():
            return tuple(DEPLETING_TYPES)
        return (MovementType.OUT,)

    def _movement_totals(self, usage_types) -> Dict[str, Sum]:
        return {
            "used": Sum("quantity", filter=Q(type__in=usage_types)),
            "transferred_in": Sum(
                "quantity", filter=Q(type=MovementType.TRANSFER, to_section__isnull=False)
            ),
            "transferred_out": Sum(
                "quantity", filter=Q(type=MovementType.TRANSFER, from_section__isnull=False)
            ),
            "used_in_sections": Sum(
                "quantity", filter=Q(type__in=usage_types, from_section__isnull=False)
            ),
        }

    @staticmethod
    def _level_from_totals(material: RawMaterial, received, totals: Dict[str, Any]) -> StockLevel:
        allocated = (
            (totals.get("transferred_in") or ZERO)
            - (totals.get("transferred_out") or ZERO)
            - (totals.get("used_in_sections") or ZERO)
        )
        return StockLevel(
            raw_material=material,
            total_received=received or ZERO,
            total_used=totals.get("used") or ZERO,
            allocated=allocated,
        )

    def compute_level(self, material: RawMaterial) -> StockLevel:
        received = StockEntry.objects.using(self.using).filter(
            raw_material_id=material.id
        ).aggregate(total=Sum("quantity"))["total"]

        totals = StockMovement.objects.using(self.using).filter(
            stock_entry__raw_material_id=material.id
        ).aggregate(**self._movement_totals(self.usage_types()))

        return self._level_from_totals(material, received, totals)

    def compute_all_levels(self) -> List[StockLevel]:
        materials = list(self.catalog.active_materials())
        ids = [m.id for m in materials]

        received = dict(
            StockEntry.objects.using(self.using)
            .filter(raw_material_id__in=ids)
            .values("raw_material_id")
            .annotate(total=Sum("quantity"))
            .order_by()
            .values_list("raw_material_id", "total")
        )
        totals_by_material = {
            row["stock_entry__raw_material_id"]: row
            for row in StockMovement.objects.using(self.using)
            .filter(stock_entry__raw_material_id__in=ids)
            .values("stock_entry__raw_material_id")
            .annotate(**self._movement_totals(self.usage_types()))
            .order_by()
        }

        return [
            self._level_from_totals(m, received.get(m.id), totals_by_material.get(m.id, {}))
            for m in materials
        ]

    @service_operation("Stock level retrieved")
    def current_level(self, raw_material_id: int) -> Dict[str, Any]:
        material = self.catalog.get_material(raw_material_id)
        return self.serialize_level(self.compute_level(material))

    @service_operation("Stock levels retrieved")
    def all_levels(self, low_stock_only: bool = False) -> Dict[str, Any]:
        levels = self.compute_all_levels()
        if low_stock_only:
            levels = [lvl for lvl in levels if lvl.is_low_stock]
        return {
            "levels": [self.serialize_level(lvl) for lvl in levels],
            "count": len(levels),
            "low_stock_count": sum(1 for lvl in levels if lvl.is_low_stock),
        }

    # ------------------------------------------------------------------
    # Lot allocation
    # ------------------------------------------------------------------

    def _lot_ordering(self):
        if self.ledger_settings.lot_selection() == LedgerSettings.LotSelection.FEFO:
            return (F("expiry_date").asc(nulls_last=True), "received_date", "id")
        return ("received_date", "id")

    def entry_usage(self, entry_ids) -> Dict[int, Decimal]:
        return dict(
            StockMovement.objects.using(self.using)
            .filter(stock_entry_id__in=entry_ids, type__in=DEPLETING_TYPES)
            .values("stock_entry_id")
            .annotate(total=Sum("quantity"))
            .order_by()
            .values_list("stock_entry_id", "total")
        )

    def allocate_lots(self, material: RawMaterial, base_quantity: Decimal) -> List[Tuple[StockEntry, Decimal]]:
        """
        Split base_quantity across the material's entries in lot order.

        An entry's remaining quantity is its own quantity minus the OUT,
        EXPIRED and DAMAGED movements attributed to it. The candidate entries
        are row-locked for the rest of the transaction. Raises
        NoAvailableEntryError when the entries cannot cover the quantity.
        """
        entries = list(
            StockEntry.objects.using(self.using)
            .select_for_update()
            .filter(raw_material_id=material.id)
            .order_by(*self._lot_ordering())
        )
        usage = self.entry_usage([e.id for e in entries])

        slices = []
        outstanding = base_quantity
        allocatable = ZERO
        for entry in entries:
            remaining = entry.quantity - (usage.get(entry.id) or ZERO)
            if remaining <= 0:
                continue
            allocatable += remaining
            if outstanding > 0:
                take = min(remaining, outstanding)
                slices.append((entry, take))
                outstanding -= take

        if outstanding > 0:
            raise NoAvailableEntryError(material.name, base_quantity, allocatable)
        return slices

    def record_for_material(self, material: RawMaterial, movement_type: str, base_quantity: Decimal,
                            from_section: Section = None, to_section: Section = None,
                            reason: str = "", performed_by=None,
                            reference_id: str = None) -> List[StockMovement]:
        """Attribute a material-level movement to lots; one movement per lot slice."""
        if reference_id is None:
            reference_id = self.sequencer.next_reference()

        movements = []
        for entry, quantity in self.allocate_lots(material, base_quantity):
            movements.append(self._create_movement(
                entry, movement_type, quantity,
                from_section=from_section,
                to_section=to_section,
                reason=reason,
                performed_by=performed_by,
                reference_id=reference_id,
            ))
        return movements

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    def _create_movement(self, entry: StockEntry, movement_type: str, quantity: Decimal,
                         from_section: Section = None, to_section: Section = None,
                         reason: str = "", performed_by=None,
                         reference_id: str = None) -> StockMovement:
        if quantity <= 0:
            raise ValidationError("Movement quantity must be greater than zero", "quantity")
        if movement_type == MovementType.TRANSFER and from_section is None and to_section is None:
            raise ValidationError("A transfer needs a source or a destination section", "to_section_id")

        movement = StockMovement(
            stock_entry=entry,
            type=movement_type,
            quantity=quantity,
            from_section=from_section,
            to_section=to_section,
            reason=reason or "",
            performed_by=performed_by,
            reference_id=reference_id,
        )
        movement.save(using=self.using)
        return movement

    @service_operation("Stock movement recorded")
    def move(self,
             stock_entry_id: int,
             movement_type: str,
             quantity,
             from_section_id: int = None,
             to_section_id: int = None,
             reason: str = "",
             performed_by=None,
             reference_id: str = None) -> Dict[str, Any]:
        if movement_type not in MovementType.values:
            raise ValidationError(
                f"Invalid movement type. Valid: {list(MovementType.values)}", "movement_type"
            )
        if movement_type == MovementType.TRANSFER:
            raise BusinessRuleError(
                "TRANSFER movements are recorded through SectionInventoryService",
                "transfer_via_section_inventory",
            )
        quantity = parse_quantity(quantity, "quantity", allow_zero=False)
        entry = self.get_or_404(stock_entry_id)

        from_section = self.catalog.get_section(from_section_id) if from_section_id else None
        to_section = self.catalog.get_section(to_section_id) if to_section_id else None

        if reference_id is None:
            reference_id = self.sequencer.next_reference()

        movement = self._create_movement(
            entry, movement_type, quantity,
            from_section=from_section,
            to_section=to_section,
            reason=reason,
            performed_by=performed_by,
            reference_id=reference_id,
        )
        logger.info(
            "Movement %s %s x %s on entry %s",
            reference_id, movement_type, format_quantity(quantity), entry.id,
        )
        return self.serialize_movement(movement)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def _conversion_notes(self, notes: str, purchase_quantity: Decimal, unit_cost: Decimal,
                          material: RawMaterial) -> str:
        info = get_pack_info(material)
        if info is None:
            return (notes or "").strip()
        individual_cost = unit_cost / info.units_per_pack
        return (
            f"{notes or ''} ({describe_conversion(purchase_quantity, material)}, "
            f"Pack cost: ${round_decimal(unit_cost, 2)}, "
            f"Individual cost: ${round_decimal(individual_cost, 4)})"
        ).strip()

    @service_operation("Stock received")
    def receive(self,
                raw_material_id: int,
                quantity,
                unit_cost=0,
                supplier: str = "",
                batch_number: str = "",
                expiry_date=None,
                received_date=None,
                received_by=None,
                notes: str = "",
                reference_id: str = None) -> Dict[str, Any]:
        """
        Record goods received in purchase units.
        Stores the entry in base units and emits the matching IN movement.
        """
        material = self.catalog.get_material(raw_material_id)
        purchase_quantity = parse_quantity(quantity, "quantity", allow_zero=False)
        unit_cost = parse_quantity(unit_cost, "unit_cost")

        base_quantity = to_base(purchase_quantity, material)

        entry = StockEntry(
            raw_material=material,
            quantity=base_quantity,
            unit_cost=unit_cost,
            total_cost=round_decimal(purchase_quantity * unit_cost, 4),
            supplier=supplier or "",
            batch_number=batch_number or "",
            expiry_date=expiry_date,
            received_by=received_by,
            notes=self._conversion_notes(notes, purchase_quantity, unit_cost, material),
        )
        if received_date is not None:
            entry.received_date = received_date
        entry.save(using=self.using)

        if get_pack_info(material):
            reason = f"Stock received ({describe_conversion(purchase_quantity, material)})"
        else:
            reason = "Stock received"

        movement = self._create_movement(
            entry, MovementType.IN, base_quantity,
            reason=reason,
            performed_by=received_by,
            reference_id=reference_id or self.sequencer.next_reference(),
        )

        logger.info(
            "Received %s of %s as entry %s (%s)",
            describe_conversion(purchase_quantity, material), material.name, entry.id,
            movement.reference_id,
        )

        data = self.serialize_entry(entry)
        data["movement"] = self.serialize_movement(movement)
        return data

    @service_operation("Stock entry updated")
    def update_entry(self,
                     stock_entry_id: int,
                     quantity=None,
                     unit_cost=None,
                     raw_material_id: int = None,
                     supplier: str = None,
                     batch_number: str = None,
                     expiry_date=None,
                     received_date=None,
                     notes: str = None) -> Dict[str, Any]:
        """
        Corrective edit. quantity is in purchase units, like receive().
        Cost and the conversion note are recomputed from the final values.
        """
        entry = self.get_or_404(stock_entry_id, lock=True)
        has_movements = entry.movements.exists()

        if raw_material_id is not None and raw_material_id != entry.raw_material_id:
            if has_movements:
                raise BusinessRuleError(
                    "Cannot change the raw material of an entry that has movements",
                    "entry_material_locked",
                )
            entry.raw_material = self.catalog.get_material(raw_material_id)

        material = entry.raw_material

        if quantity is not None:
            purchase_quantity = parse_quantity(quantity, "quantity", allow_zero=False)
            base_quantity = to_base(purchase_quantity, material)
            used = self.entry_usage([entry.id]).get(entry.id) or ZERO
            if base_quantity < used:
                raise BusinessRuleError(
                    f"Cannot reduce entry below the {format_quantity(used)} already used from it",
                    "entry_below_usage",
                )
            entry.quantity = base_quantity
        else:
            purchase_quantity = to_pack(entry.quantity, material)

        if unit_cost is not None:
            entry.unit_cost = parse_quantity(unit_cost, "unit_cost")

        if supplier is not None:
            entry.supplier = supplier
        if batch_number is not None:
            entry.batch_number = batch_number
        if expiry_date is not None:
            entry.expiry_date = expiry_date
        if received_date is not None:
            entry.received_date = received_date

        base_notes = notes if notes is not None else CONVERSION_NOTE_RE.sub("", entry.notes)
        entry.total_cost = round_decimal(purchase_quantity * entry.unit_cost, 4)
        entry.notes = self._conversion_notes(base_notes, purchase_quantity, entry.unit_cost, material)
        entry.save(using=self.using)

        logger.info("Stock entry %s corrected", entry.id)
        return self.serialize_entry(entry)

    @service_operation("Stock entry deleted")
    def delete_entry(self, stock_entry_id: int, force: bool = False) -> Dict[str, Any]:
        entry = self.get_or_404(stock_entry_id, lock=True)
        movement_count = entry.movements.count()

        if movement_count and not force:
            raise ConflictingDeleteError("StockEntry", stock_entry_id, movement_count)

        if movement_count:
            logger.warning(
                "Force-deleting stock entry %s together with %s movement(s)",
                entry.id, movement_count,
            )
            entry.movements.all().delete()

        entry.delete(using=self.using)
        return {"id": stock_entry_id, "deleted_movements": movement_count}

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    @service_operation("Stock entries retrieved")
    def list_entries(self,
                     raw_material_id: int = None,
                     supplier: str = None,
                     date_from=None,
                     date_to=None,
                     page: int = 1,
                     per_page: int = 20) -> Dict[str, Any]:
        queryset = self.objects.select_related("raw_material")

        if raw_material_id:
            queryset = queryset.filter(raw_material_id=raw_material_id)
        if supplier:
            queryset = queryset.filter(supplier__icontains=supplier)
        if date_from:
            queryset = queryset.filter(received_date__date__gte=date_from)
        if date_to:
            queryset = queryset.filter(received_date__date__lte=date_to)

        queryset = queryset.order_by("-received_date", "-id")
        entries, pagination = paginate_queryset(queryset, page, per_page)

        return {
            "entries": [self.serialize_entry(e) for e in entries],
            "pagination": pagination,
        }

    @service_operation("Stock movements retrieved")
    def list_movements(self,
                       stock_entry_id: int = None,
                       raw_material_id: int = None,
                       movement_type: str = None,
                       section_id: int = None,
                       reference_id: str = None,
                       date_from=None,
                       date_to=None,
                       page: int = 1,
                       per_page: int = 20) -> Dict[str, Any]:
        queryset = StockMovement.objects.using(self.using).all()

        if stock_entry_id:
            queryset = queryset.filter(stock_entry_id=stock_entry_id)
        if raw_material_id:
            queryset = queryset.filter(stock_entry__raw_material_id=raw_material_id)
        if movement_type:
            if movement_type not in MovementType.values:
                raise ValidationError(
                    f"Invalid movement type. Valid: {list(MovementType.values)}", "movement_type"
                )
            queryset = queryset.filter(type=movement_type)
        if section_id:
            queryset = queryset.filter(Q(from_section_id=section_id) | Q(to_section_id=section_id))
        if reference_id:
            queryset = queryset.filter(reference_id=reference_id)
        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)

        movements, pagination = paginate_queryset(queryset.order_by("-created_at", "-id"), page, per_page)

        return {
            "movements": [self.serialize_movement(m) for m in movements],
            "pagination": pagination,
        }

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def allocation_report(self) -> List[Dict[str, Any]]:
        """Section inventory totals next to the ledger-derived allocation, per material."""
        section_totals = dict(
            SectionInventory.objects.using(self.using)
            .values("raw_material_id")
            .annotate(total=Sum("quantity"))
            .order_by()
            .values_list("raw_material_id", "total")
        )

        report = []
        for level in self.compute_all_levels():
            material = level.raw_material
            in_sections = section_totals.get(material.id) or ZERO
            report.append({
                "raw_material_id": material.id,
                "name": material.name,
                "section_total": in_sections,
                "ledger_allocated": level.allocated,
                "difference": in_sections - level.allocated,
                "on_hand": level.on_hand,
                "consistent": in_sections == level.allocated and level.allocated <= level.on_hand,
            })
        return report
