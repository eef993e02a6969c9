import uuid as uuid_lib

from django.conf import settings
from django.db import models
from django.utils import timezone

from catalog.models import RawMaterial, Section


class StockEntry(models.Model):
    """
    A receipt of physical goods.
    Quantity is always stored in base units; costs stay at purchase granularity.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    raw_material = models.ForeignKey(
        RawMaterial, on_delete=models.PROTECT, related_name="stock_entries"
    )
    quantity = models.DecimalField(max_digits=18, decimal_places=6)
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    total_cost = models.DecimalField(max_digits=18, decimal_places=4, default=0)

    supplier = models.CharField(max_length=200, blank=True, default="")
    batch_number = models.CharField(max_length=100, blank=True, default="")
    expiry_date = models.DateField(null=True, blank=True, db_index=True)
    received_date = models.DateTimeField(default=timezone.now)
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="received_stock_entries",
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["received_date", "id"]
        verbose_name_plural = "stock entries"
        indexes = [
            models.Index(fields=["raw_material", "received_date"], name="stock_entry_material_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="stock_entry_quantity_positive",
            ),
        ]

    def __str__(self):
        return f"Entry #{self.pk} - {self.raw_material.name}: {self.quantity}"


class StockMovement(models.Model):
    """
    Append-only ledger line. Quantity is a positive magnitude; direction comes
    from the type and the from/to section pair.
    """

    class MovementType(models.TextChoices):
        IN = "IN", "Stock In"
        OUT = "OUT", "Stock Out"
        TRANSFER = "TRANSFER", "Transfer"
        EXPIRED = "EXPIRED", "Expired"
        DAMAGED = "DAMAGED", "Damaged"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    stock_entry = models.ForeignKey(
        StockEntry, on_delete=models.PROTECT, related_name="movements"
    )
    type = models.CharField(max_length=20, choices=MovementType.choices, db_index=True)
    quantity = models.DecimalField(max_digits=18, decimal_places=6)
    from_section = models.ForeignKey(
        Section,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="outgoing_movements",
    )
    to_section = models.ForeignKey(
        Section,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="incoming_movements",
    )
    reason = models.TextField(blank=True, default="")
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_movements",
    )
    reference_id = models.CharField(max_length=50, blank=True, null=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["stock_entry", "type"], name="stock_move_entry_type_idx"),
            models.Index(fields=["type", "created_at"], name="stock_move_type_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="stock_movement_quantity_positive",
            ),
            models.CheckConstraint(
                condition=(
                    ~models.Q(type="TRANSFER")
                    | models.Q(from_section__isnull=False)
                    | models.Q(to_section__isnull=False)
                ),
                name="stock_movement_transfer_has_section",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Stock movements are append-only; record a compensating movement instead")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.reference_id or '-'} | {self.get_type_display()} {self.quantity}"


class SectionInventory(models.Model):
    """
    Stock currently allocated to a section, in base units.
    One row per (section, raw material).
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    section = models.ForeignKey(
        Section, on_delete=models.CASCADE, related_name="inventory"
    )
    raw_material = models.ForeignKey(
        RawMaterial, on_delete=models.CASCADE, related_name="section_inventory"
    )
    quantity = models.DecimalField(max_digits=18, decimal_places=6, default=0)
    # Not enforced yet; kept for hard reservations
    reserved_quantity = models.DecimalField(max_digits=18, decimal_places=6, default=0)
    min_level = models.DecimalField(max_digits=18, decimal_places=6, null=True, blank=True)
    max_level = models.DecimalField(max_digits=18, decimal_places=6, null=True, blank=True)
    last_updated = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [("section", "raw_material")]
        verbose_name_plural = "section inventory"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name="section_inventory_quantity_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.raw_material.name} @ {self.section.name}: {self.quantity}"


class SectionConsumption(models.Model):
    """Audit trail of stock consumed from a section. Never updated or deleted."""

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    section = models.ForeignKey(
        Section, on_delete=models.PROTECT, related_name="consumptions"
    )
    raw_material = models.ForeignKey(
        RawMaterial, on_delete=models.PROTECT, related_name="consumptions"
    )
    quantity = models.DecimalField(max_digits=18, decimal_places=6)
    consumed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="section_consumptions",
    )
    consumed_date = models.DateTimeField(default=timezone.now, db_index=True)
    reason = models.TextField(blank=True, default="")
    order_id = models.CharField(max_length=50, blank=True, null=True, db_index=True)
    notes = models.TextField(blank=True, default="")
    # False when no ledger movement could be attributed to this consumption
    ledger_reconciled = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-consumed_date", "-id"]
        indexes = [
            models.Index(fields=["section", "consumed_date"], name="consumption_section_date_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Section consumption records are append-only")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.order_id or '-'} | {self.raw_material.name} x {self.quantity}"


class OrderCounter(models.Model):
    """
    Singleton counter behind reference ids. Use OrderCounter.load() to read it;
    increments go through ReferenceSequencer under a row lock.
    """

    last_order_number = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        # Enforce singleton: always use pk=1
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls, using: str = None):
        obj, _ = cls.objects.db_manager(using).get_or_create(pk=1)
        return obj

    def __str__(self):
        return f"Order counter at {self.last_order_number}"


class LedgerSettings(models.Model):
    """
    Singleton ledger policy. Use LedgerSettings.load() to get the instance.
    """

    class LotSelection(models.TextChoices):
        FIFO = "FIFO", "First In, First Out"
        FEFO = "FEFO", "First Expired, First Out"

    # EXPIRED/DAMAGED movements reduce on-hand stock like OUT does
    count_losses_as_used = models.BooleanField(default=True)
    # Refuse a consumption when no stock entry can carry its OUT movement
    require_ledger_movement = models.BooleanField(default=True)
    lot_selection = models.CharField(
        max_length=10, choices=LotSelection.choices, default=LotSelection.FIFO
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "ledger settings"
        verbose_name_plural = "ledger settings"

    def save(self, *args, **kwargs):
        # Enforce singleton: always use pk=1
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls, using: str = None):
        obj, _ = cls.objects.db_manager(using).get_or_create(pk=1)
        return obj

    def __str__(self):
        return "Ledger Settings"
