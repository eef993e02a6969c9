from decimal import Decimal

from django.test import TestCase

from ledger.models import SectionConsumption, SectionInventory, StockEntry, StockMovement
from ledger.services import (
    ConsumptionService, LedgerSettingsService, SectionInventoryService, StockLedgerService,
)
from ledger.tests.helpers import make_bulk_material, make_material, make_section, make_user

MovementType = StockMovement.MovementType


class ConsumptionTestCase(TestCase):

    def setUp(self):
        self.ledger = StockLedgerService()
        self.sections = SectionInventoryService(ledger=self.ledger)
        self.consumption = ConsumptionService(ledger=self.ledger, sections=self.sections)
        self.user = make_user()
        self.buns = make_material()
        self.kitchen = make_section("Kitchen")
        self.ledger.receive(self.buns.id, 10, "12.00")
        self.sections.assign(self.kitchen.id, self.buns.id, 2)

    def row(self, material=None) -> SectionInventory:
        return SectionInventory.objects.get(section=self.kitchen, raw_material=material or self.buns)


class ConsumeScenarioTests(ConsumptionTestCase):

    def test_received_assigned_and_consumed(self):
        self.assertEqual(StockEntry.objects.get().quantity, Decimal("240"))
        self.assertEqual(self.row().quantity, Decimal("48"))
        self.assertEqual(self.ledger.compute_level(self.buns).available, Decimal("192"))

        too_much = self.consumption.consume(self.kitchen.id, self.buns.id, 50, consumed_by=self.user)
        self.assertFalse(too_much["success"])
        self.assertEqual(too_much["error_code"], "INSUFFICIENT_SECTION_STOCK")
        self.assertIn("Available: 48, Requested: 50", too_much["message"])
        self.assertEqual(self.row().quantity, Decimal("48"))
        self.assertFalse(SectionConsumption.objects.exists())

        result = self.consumption.consume(self.kitchen.id, self.buns.id, 24, consumed_by=self.user, reason="Sale")
        self.assertTrue(result["success"])
        self.assertEqual(self.row().quantity, Decimal("24"))

        consumption = SectionConsumption.objects.get()
        self.assertEqual(consumption.quantity, Decimal("24"))
        self.assertEqual(consumption.section, self.kitchen)
        self.assertEqual(consumption.raw_material, self.buns)
        self.assertTrue(consumption.ledger_reconciled)

    def test_consumption_moves_stock_from_allocated_to_used(self):
        self.consumption.consume(self.kitchen.id, self.buns.id, 24)

        level = self.ledger.compute_level(self.buns)
        self.assertEqual(level.total_used, Decimal("24"))
        self.assertEqual(level.on_hand, Decimal("216"))
        self.assertEqual(level.allocated, Decimal("24"))
        self.assertEqual(level.available, Decimal("192"))

    def test_out_movement_shares_order_id(self):
        result = self.consumption.consume(self.kitchen.id, self.buns.id, 12, reason="Sale")

        order_id = result["data"]["consumption"]["order_id"]
        self.assertRegex(order_id, r"^ORDER-\d{3,}$")
        movement = StockMovement.objects.get(type=MovementType.OUT)
        self.assertEqual(movement.reference_id, order_id)
        self.assertEqual(movement.from_section, self.kitchen)
        self.assertEqual(movement.quantity, Decimal("12"))
        self.assertEqual(movement.reason, "Sale (0.5 PACKS = 12 PIECES)")

    def test_supplied_order_id_is_kept(self):
        result = self.consumption.consume(self.kitchen.id, self.buns.id, 1, order_id="TABLE-12")

        self.assertEqual(result["data"]["consumption"]["order_id"], "TABLE-12")
        self.assertEqual(StockMovement.objects.get(type=MovementType.OUT).reference_id, "TABLE-12")

    def test_consume_without_assignment(self):
        bar = make_section("Bar", type="BAR")

        result = self.consumption.consume(bar.id, self.buns.id, 1)

        self.assertFalse(result["success"])
        self.assertEqual(result["error_code"], "NOT_FOUND")
        self.assertEqual(result["details"]["resource"], "SectionInventory")

    def test_consume_rejects_bad_quantity(self):
        for quantity in (0, -1, None, "lots"):
            with self.subTest(quantity=quantity):
                result = self.consumption.consume(self.kitchen.id, self.buns.id, quantity)
                self.assertEqual(result["error_code"], "INVALID_QUANTITY")

    def test_consumption_rows_are_append_only(self):
        self.consumption.consume(self.kitchen.id, self.buns.id, 1)
        consumption = SectionConsumption.objects.get()
        consumption.notes = "edited"

        with self.assertRaises(ValueError):
            consumption.save()


class LedgerMovementPolicyTests(ConsumptionTestCase):

    def setUp(self):
        super().setUp()
        # Every lot written off while the section still holds its allocation
        entry = StockEntry.objects.get()
        self.ledger.move(entry.id, MovementType.DAMAGED, 240, reason="Flooded storeroom")

    def test_strict_policy_rolls_back_consumption(self):
        result = self.consumption.consume(self.kitchen.id, self.buns.id, 24)

        self.assertFalse(result["success"])
        self.assertEqual(result["error_code"], "NO_AVAILABLE_ENTRY")
        self.assertEqual(self.row().quantity, Decimal("48"))
        self.assertFalse(SectionConsumption.objects.exists())
        self.assertFalse(StockMovement.objects.filter(type=MovementType.OUT).exists())

    def test_lenient_policy_keeps_flagged_consumption(self):
        LedgerSettingsService().update(require_ledger_movement=False)

        with self.assertLogs("ledger.services.consumption_service", level="WARNING"):
            result = self.consumption.consume(self.kitchen.id, self.buns.id, 24)

        self.assertTrue(result["success"])
        self.assertFalse(result["data"]["ledger_reconciled"])
        self.assertEqual(result["data"]["movements"], [])
        self.assertEqual(self.row().quantity, Decimal("24"))
        self.assertFalse(SectionConsumption.objects.get().ledger_reconciled)

        listed = self.consumption.unreconciled()["data"]
        self.assertEqual(len(listed["consumptions"]), 1)
        self.assertEqual(self.consumption.unreconciled_count(), 1)


class ConsumeManyTests(ConsumptionTestCase):

    def setUp(self):
        super().setUp()
        self.flour = make_bulk_material()
        self.ledger.receive(self.flour.id, 10, "1.20")
        self.sections.assign(self.kitchen.id, self.flour.id, 2)

    def test_lines_share_one_order_id(self):
        result = self.consumption.consume_many(self.kitchen.id, [
            {"raw_material_id": self.buns.id, "quantity": 2},
            {"raw_material_id": self.flour.id, "quantity": "0.25"},
        ], consumed_by=self.user)

        self.assertTrue(result["success"])
        data = result["data"]
        self.assertEqual(data["count"], 2)
        self.assertEqual(
            set(SectionConsumption.objects.values_list("order_id", flat=True)), {data["order_id"]}
        )
        self.assertEqual(self.row().quantity, Decimal("46"))
        self.assertEqual(self.row(self.flour).quantity, Decimal("1.75"))

    def test_failing_line_rolls_back_earlier_lines(self):
        result = self.consumption.consume_many(self.kitchen.id, [
            {"raw_material_id": self.buns.id, "quantity": 2},
            {"raw_material_id": self.flour.id, "quantity": 5},
        ])

        self.assertFalse(result["success"])
        self.assertEqual(result["error_code"], "INSUFFICIENT_SECTION_STOCK")
        self.assertEqual(result["details"]["line"], 1)
        self.assertEqual(self.row().quantity, Decimal("48"))
        self.assertFalse(SectionConsumption.objects.exists())
        self.assertFalse(StockMovement.objects.filter(type=MovementType.OUT).exists())

    def test_requires_lines(self):
        self.assertEqual(self.consumption.consume_many(self.kitchen.id, [])["error_code"], "VALIDATION_ERROR")

    def test_rejects_lines_that_are_not_mappings(self):
        result = self.consumption.consume_many(self.kitchen.id, [
            {"raw_material_id": self.buns.id, "quantity": 2},
            (self.flour.id, "0.25"),
        ])

        self.assertFalse(result["success"])
        self.assertEqual(result["error_code"], "VALIDATION_ERROR")
        self.assertEqual(result["details"]["field"], "lines")
        self.assertEqual(result["details"]["line"], 1)
        self.assertEqual(self.row().quantity, Decimal("48"))
        self.assertFalse(SectionConsumption.objects.exists())


class HistoryTests(ConsumptionTestCase):

    def test_history_with_pack_fields(self):
        self.consumption.consume(self.kitchen.id, self.buns.id, 12, reason="Sale")
        self.consumption.consume(self.kitchen.id, self.buns.id, 6, reason="Staff meal")

        result = self.consumption.history(self.kitchen.id)

        self.assertTrue(result["success"])
        rows = result["data"]["consumptions"]
        self.assertEqual(result["data"]["pagination"]["total_items"], 2)
        self.assertEqual(rows[0]["reason"], "Staff meal")
        self.assertEqual(rows[0]["pack_quantity"], "0.3")
        self.assertEqual(rows[1]["quantity"], "12")

    def test_history_filters_by_material(self):
        flour = make_bulk_material()
        self.ledger.receive(flour.id, 5, "1.20")
        self.sections.assign(self.kitchen.id, flour.id, 1)
        self.consumption.consume(self.kitchen.id, flour.id, "0.5")
        self.consumption.consume(self.kitchen.id, self.buns.id, 1)

        result = self.consumption.history(self.kitchen.id, raw_material_id=flour.id)

        self.assertEqual([r["raw_material_id"] for r in result["data"]["consumptions"]], [flour.id])
