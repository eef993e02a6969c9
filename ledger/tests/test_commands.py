import json
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from ledger.models import SectionInventory
from ledger.services import (
    ConsumptionService, LedgerSettingsService, ReferenceSequencer,
    SectionInventoryService, StockLedgerService,
)
from ledger.tests.helpers import make_bulk_material, make_material, make_section


def run(*args, **options) -> str:
    out = StringIO()
    call_command(*args, stdout=out, **options)
    return out.getvalue()


class StockLevelsCommandTests(TestCase):

    def setUp(self):
        self.buns = make_material(min_stock_level=Decimal("100"))
        self.flour = make_bulk_material()
        StockLedgerService().receive(self.flour.id, 20, "1.20")
        StockLedgerService().receive(self.buns.id, 2, "12.00")

    def test_prints_levels_and_flags_low_stock(self):
        output = run("stock_levels")

        self.assertIn("Burger buns: available 48 PIECES (2.0 PACKS)", output)
        self.assertIn("[LOW]", output)
        self.assertIn("Flour: available 20 KG", output)
        self.assertIn("2 material(s), 1 low", output)

    def test_low_only_json(self):
        levels = json.loads(run("stock_levels", "--low-only", "--json"))

        self.assertEqual([lvl["name"] for lvl in levels], ["Burger buns"])
        self.assertTrue(levels[0]["is_low_stock"])


class OrderCounterCommandTests(TestCase):

    def test_show_counter(self):
        ReferenceSequencer().next_reference()

        output = run("order_counter")

        self.assertIn("Last issued: 1 (ORDER-001)", output)
        self.assertIn("Next: ORDER-002", output)

    def test_reset_counter(self):
        output = run("order_counter", "--reset", "41")

        self.assertIn("Counter reset from 0 to 41", output)
        self.assertEqual(ReferenceSequencer().next_reference(), "ORDER-042")

    def test_reset_rejects_negative(self):
        with self.assertRaises(CommandError):
            run("order_counter", reset=-1)


class ReconcileLedgerCommandTests(TestCase):

    def setUp(self):
        self.ledger = StockLedgerService()
        self.buns = make_material()
        self.kitchen = make_section()
        self.ledger.receive(self.buns.id, 10, "12.00")
        SectionInventoryService(ledger=self.ledger).assign(self.kitchen.id, self.buns.id, 2)

    def test_consistent_ledger(self):
        ConsumptionService(ledger=self.ledger).consume(self.kitchen.id, self.buns.id, 10)

        output = run("reconcile_ledger")

        self.assertIn("Ledger consistent across 1 material(s)", output)

    def test_section_drift_is_reported(self):
        SectionInventory.objects.filter(section=self.kitchen).update(quantity=Decimal("60"))

        with self.assertRaises(CommandError) as ctx:
            run("reconcile_ledger")

        self.assertIn("1 material(s)", str(ctx.exception))

    def test_unreconciled_consumptions_are_reported(self):
        entry = self.buns.stock_entries.get()
        self.ledger.move(entry.id, "DAMAGED", 240)
        LedgerSettingsService().update(require_ledger_movement=False)
        ConsumptionService(ledger=self.ledger).consume(self.kitchen.id, self.buns.id, 10)

        with self.assertRaises(CommandError) as ctx:
            run("reconcile_ledger")

        self.assertIn("1 unreconciled consumption(s)", str(ctx.exception))
