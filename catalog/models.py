import uuid as uuid_lib

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class RawMaterial(models.Model):
    """
    Purchasable ingredient or consumable.
    Read-mostly reference data: the stock ledger reads it but never edits it.
    """

    class Unit(models.TextChoices):
        KG = "KG", "Kilograms"
        GRAMS = "GRAMS", "Grams"
        LITERS = "LITERS", "Liters"
        MILLILITERS = "MILLILITERS", "Milliliters"
        PIECES = "PIECES", "Pieces"
        PACKS = "PACKS", "Packs"
        BOXES = "BOXES", "Boxes"
        BOTTLES = "BOTTLES", "Bottles"
        CANS = "CANS", "Cans"

    class Category(models.TextChoices):
        MEAT = "MEAT", "Meat"
        VEGETABLES = "VEGETABLES", "Vegetables"
        DAIRY = "DAIRY", "Dairy"
        BEVERAGES = "BEVERAGES", "Beverages"
        SPICES = "SPICES", "Spices"
        GRAINS = "GRAINS", "Grains"
        CLEANING = "CLEANING", "Cleaning"
        OTHER = "OTHER", "Other"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    category = models.CharField(
        max_length=20, choices=Category.choices, default=Category.OTHER
    )

    # Purchase unit; PACKS/BOXES convert to base_unit through units_per_pack
    unit = models.CharField(max_length=20, choices=Unit.choices)
    units_per_pack = models.DecimalField(
        max_digits=15,
        decimal_places=6,
        null=True,
        blank=True,
        help_text="Base units contained in one pack/box",
    )
    base_unit = models.CharField(
        max_length=20, choices=Unit.choices, default=Unit.PIECES
    )

    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    supplier = models.CharField(max_length=200, blank=True, default="")
    min_stock_level = models.DecimalField(max_digits=18, decimal_places=6, default=0)
    max_stock_level = models.DecimalField(max_digits=18, decimal_places=6, default=0)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(unit_cost__gte=0),
                name="raw_material_unit_cost_non_negative",
            ),
        ]

    @property
    def is_pack(self) -> bool:
        return self.unit in (self.Unit.PACKS, self.Unit.BOXES)

    def clean(self):
        if self.is_pack and (self.units_per_pack is None or self.units_per_pack <= 0):
            raise ValidationError(
                {"units_per_pack": "Packs and boxes need a positive units per pack"}
            )
        if self.min_stock_level > self.max_stock_level:
            raise ValidationError(
                {"min_stock_level": "Minimum stock level cannot exceed the maximum"}
            )

    def __str__(self):
        return f"{self.name} ({self.unit})"


class Section(models.Model):
    class SectionType(models.TextChoices):
        KITCHEN = "KITCHEN", "Kitchen"
        BAR = "BAR", "Bar"
        STORAGE = "STORAGE", "Storage"
        PREP = "PREP", "Prep Area"
        SERVICE = "SERVICE", "Service"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    type = models.CharField(max_length=20, choices=SectionType.choices)
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="managed_sections",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.get_type_display()})"
