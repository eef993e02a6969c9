"""
Pack/box <-> base unit conversion.

Ledger quantities are always stored in base units. A material bought in
PACKS or BOXES converts through its units_per_pack; every other purchase unit
converts as identity. Base-unit values keep full Decimal precision; only the
display helpers round (one decimal place, pack terms).

These helpers take any object with unit / units_per_pack / base_unit
attributes, so they run without a database.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from ledger.services.base_service import to_decimal, round_decimal, format_quantity

PACK_UNITS = ("PACKS", "BOXES")
DEFAULT_BASE_UNIT = "PIECES"


@dataclass(frozen=True)
class PackInfo:
    units_per_pack: Decimal
    base_unit: str
    pack_unit: str


def get_pack_info(material) -> Optional[PackInfo]:
    if material is None or getattr(material, "unit", None) not in PACK_UNITS:
        return None

    units_per_pack = to_decimal(getattr(material, "units_per_pack", None), None)
    if units_per_pack is None or units_per_pack <= 0:
        units_per_pack = Decimal("1")

    return PackInfo(
        units_per_pack=units_per_pack,
        base_unit=getattr(material, "base_unit", None) or DEFAULT_BASE_UNIT,
        pack_unit=material.unit,
    )


def base_unit_of(material) -> str:
    info = get_pack_info(material)
    return info.base_unit if info else material.unit


def to_base(quantity: Any, material) -> Decimal:
    quantity = to_decimal(quantity)
    info = get_pack_info(material)
    if info is None:
        return quantity
    return quantity * info.units_per_pack


def to_pack(base_quantity: Any, material) -> Decimal:
    base_quantity = to_decimal(base_quantity)
    info = get_pack_info(material)
    if info is None:
        return base_quantity
    return base_quantity / info.units_per_pack


def display_quantity(base_quantity: Any, material) -> Decimal:
    """Purchase-unit quantity rounded to one decimal, for messages and serializers."""
    return round_decimal(to_pack(base_quantity, material), 1)


def describe_conversion(purchase_quantity: Any, material) -> str:
    purchase_quantity = to_decimal(purchase_quantity)
    info = get_pack_info(material)
    if info is None:
        return f"{format_quantity(purchase_quantity)} {material.unit}"
    base_quantity = to_base(purchase_quantity, material)
    return (
        f"{round_decimal(purchase_quantity, 1)} {info.pack_unit} = "
        f"{format_quantity(base_quantity)} {info.base_unit}"
    )


def describe_base_quantity(base_quantity: Any, material) -> str:
    """Same note as describe_conversion, starting from a base-unit quantity."""
    info = get_pack_info(material)
    if info is None:
        return f"{format_quantity(to_decimal(base_quantity))} {material.unit}"
    return (
        f"{display_quantity(base_quantity, material)} {info.pack_unit} = "
        f"{format_quantity(to_decimal(base_quantity))} {info.base_unit}"
    )


def serialize_quantity(base_quantity: Any, material, prefix: str = "") -> Dict[str, Any]:
    base_quantity = to_decimal(base_quantity)
    data = {
        f"{prefix}quantity": format_quantity(base_quantity),
        f"{prefix}unit": base_unit_of(material),
    }
    info = get_pack_info(material)
    if info is not None:
        data[f"{prefix}pack_quantity"] = str(display_quantity(base_quantity, material))
        data[f"{prefix}pack_unit"] = info.pack_unit
    return data


def serialize_pack_info(material) -> Optional[Dict[str, Any]]:
    info = get_pack_info(material)
    if info is None:
        return None
    return {
        "units_per_pack": format_quantity(info.units_per_pack),
        "base_unit": info.base_unit,
        "pack_unit": info.pack_unit,
    }
