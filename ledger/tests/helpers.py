from decimal import Decimal

from django.contrib.auth import get_user_model

from catalog.models import RawMaterial, Section


def make_user(username: str = "chef"):
    return get_user_model().objects.create_user(username=username, password="secret")


def make_material(name: str = "Burger buns", **overrides) -> RawMaterial:
    fields = {
        "unit": RawMaterial.Unit.PACKS,
        "units_per_pack": Decimal("24"),
        "base_unit": RawMaterial.Unit.PIECES,
        "unit_cost": Decimal("12.00"),
        "min_stock_level": Decimal("0"),
        "max_stock_level": Decimal("1000"),
    }
    fields.update(overrides)
    return RawMaterial.objects.create(name=name, **fields)


def make_bulk_material(name: str = "Flour", **overrides) -> RawMaterial:
    fields = {
        "unit": RawMaterial.Unit.KG,
        "units_per_pack": None,
        "unit_cost": Decimal("1.20"),
    }
    fields.update(overrides)
    return make_material(name, **fields)


def make_section(name: str = "Kitchen", type: str = Section.SectionType.KITCHEN, **overrides) -> Section:
    return Section.objects.create(name=name, type=type, **overrides)
