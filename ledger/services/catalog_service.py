from typing import Dict, Any

from catalog.models import RawMaterial, Section
from ledger.services.base_service import BaseService, NotFoundError, format_quantity
from ledger.services.unit_service import serialize_pack_info


class CatalogLookup(BaseService):
    """Read-only access to raw materials and sections."""

    model = RawMaterial

    def get_material(self, raw_material_id: int, active_only: bool = True, lock: bool = False) -> RawMaterial:
        queryset = RawMaterial.objects.using(self.using)
        if active_only:
            queryset = queryset.filter(is_active=True)
        if lock:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(id=raw_material_id)
        except (RawMaterial.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("RawMaterial", raw_material_id)

    def get_section(self, section_id: int, active_only: bool = True) -> Section:
        queryset = Section.objects.using(self.using)
        if active_only:
            queryset = queryset.filter(is_active=True)
        try:
            return queryset.get(id=section_id)
        except (Section.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Section", section_id)

    def active_materials(self):
        return self.get_active().order_by("name")

    def serialize_material(self, material: RawMaterial) -> Dict[str, Any]:
        return {
            "id": material.id,
            "uuid": str(material.uuid),
            "name": material.name,
            "unit": material.unit,
            "unit_display": material.get_unit_display(),
            "pack_info": serialize_pack_info(material),
            "unit_cost": str(material.unit_cost),
            "min_stock_level": format_quantity(material.min_stock_level),
            "max_stock_level": format_quantity(material.max_stock_level),
            "is_active": material.is_active,
        }

    def serialize_section(self, section: Section) -> Dict[str, Any]:
        return {
            "id": section.id,
            "uuid": str(section.uuid),
            "name": section.name,
            "type": section.type,
            "type_display": section.get_type_display(),
            "is_active": section.is_active,
        }
