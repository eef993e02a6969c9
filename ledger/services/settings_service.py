import logging
from typing import Dict, Any

from ledger.models import LedgerSettings
from ledger.services.base_service import BaseService, ValidationError, service_operation

logger = logging.getLogger(__name__)


class LedgerSettingsService(BaseService):
    model = LedgerSettings

    BOOLEAN_FIELDS = ("count_losses_as_used", "require_ledger_movement")

    def load(self) -> LedgerSettings:
        return LedgerSettings.load(using=self.using)

    def counts_losses_as_used(self) -> bool:
        return self.load().count_losses_as_used

    def requires_ledger_movement(self) -> bool:
        return self.load().require_ledger_movement

    def lot_selection(self) -> str:
        return self.load().lot_selection

    def serialize(self, ledger_settings: LedgerSettings) -> Dict[str, Any]:
        return {
            "count_losses_as_used": ledger_settings.count_losses_as_used,
            "require_ledger_movement": ledger_settings.require_ledger_movement,
            "lot_selection": ledger_settings.lot_selection,
            "lot_selection_display": ledger_settings.get_lot_selection_display(),
        }

    def get_all(self) -> Dict[str, Any]:
        return self.serialize(self.load())

    @service_operation("Ledger settings updated")
    def update(self, **kwargs) -> Dict[str, Any]:
        ledger_settings = self.load()
        valid_fields = set(self.BOOLEAN_FIELDS) | {"lot_selection"}

        unknown = sorted(set(kwargs) - valid_fields)
        if unknown:
            raise ValidationError(f"Unknown setting(s): {', '.join(unknown)}", unknown[0])

        for field in self.BOOLEAN_FIELDS:
            if field in kwargs and not isinstance(kwargs[field], bool):
                raise ValidationError(f"{field} must be true or false", field)

        if "lot_selection" in kwargs:
            valid_methods = [c[0] for c in LedgerSettings.LotSelection.choices]
            if kwargs["lot_selection"] not in valid_methods:
                raise ValidationError(f"Invalid lot selection. Valid: {valid_methods}", "lot_selection")

        updated = []
        for field, value in kwargs.items():
            setattr(ledger_settings, field, value)
            updated.append(field)

        if updated:
            ledger_settings.save(using=self.using)
            logger.info("Ledger settings changed: %s", ", ".join(updated))

        return {
            "updated_fields": updated,
            "settings": self.serialize(ledger_settings),
        }
