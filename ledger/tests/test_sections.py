from decimal import Decimal

from django.test import TestCase

from ledger.models import SectionInventory, StockMovement
from ledger.services import SectionInventoryService, StockLedgerService
from ledger.tests.helpers import make_bulk_material, make_material, make_section, make_user

MovementType = StockMovement.MovementType


class SectionTestCase(TestCase):

    def setUp(self):
        self.ledger = StockLedgerService()
        self.sections = SectionInventoryService(ledger=self.ledger)
        self.user = make_user()
        self.buns = make_material()
        self.kitchen = make_section("Kitchen")
        self.bar = make_section("Bar", type="BAR")
        self.ledger.receive(self.buns.id, 10, "12.00")

    def available(self, material=None) -> Decimal:
        return self.ledger.compute_level(material or self.buns).available

    def row(self, section=None) -> SectionInventory:
        return SectionInventory.objects.get(section=section or self.kitchen, raw_material=self.buns)

    def transfers(self):
        return StockMovement.objects.filter(type=MovementType.TRANSFER).order_by("id")


class AssignTests(SectionTestCase):

    def test_assign_converts_and_reduces_available(self):
        result = self.sections.assign(self.kitchen.id, self.buns.id, 2, assigned_by=self.user)

        self.assertTrue(result["success"])
        self.assertEqual(result["message"], "Stock assigned to section successfully")
        self.assertEqual(self.row().quantity, Decimal("48"))
        self.assertEqual(self.row().reserved_quantity, Decimal("0"))
        self.assertEqual(self.available(), Decimal("192"))
        self.assertEqual(result["data"]["inventory"]["pack_quantity"], "2.0")

    def test_assign_emits_transfer_into_section(self):
        self.sections.assign(self.kitchen.id, self.buns.id, 2, assigned_by=self.user)

        movement = self.transfers().get()
        self.assertEqual(movement.to_section, self.kitchen)
        self.assertIsNone(movement.from_section)
        self.assertEqual(movement.quantity, Decimal("48"))
        self.assertEqual(movement.reason, "Stock assigned to section (2.0 PACKS = 48 PIECES)")
        self.assertEqual(movement.performed_by, self.user)

    def test_repeated_assignment_accumulates(self):
        self.sections.assign(self.kitchen.id, self.buns.id, 2)
        self.sections.assign(self.kitchen.id, self.buns.id, "0.5")

        self.assertEqual(self.row().quantity, Decimal("60"))
        self.assertEqual(SectionInventory.objects.count(), 1)
        self.assertEqual(self.available(), Decimal("180"))

    def test_assign_more_than_available_changes_nothing(self):
        result = self.sections.assign(self.kitchen.id, self.buns.id, 11)

        self.assertFalse(result["success"])
        self.assertEqual(result["error_code"], "INSUFFICIENT_STOCK")
        self.assertIn("Requested: 11.0 PACKS, Available: 10.0 PACKS", result["message"])
        self.assertFalse(SectionInventory.objects.exists())
        self.assertFalse(self.transfers().exists())
        self.assertEqual(self.available(), Decimal("240"))

    def test_shortfall_message_keeps_fractional_base_units(self):
        flour = make_bulk_material()
        self.ledger.receive(flour.id, "0.04", "1.20")

        result = self.sections.assign(self.kitchen.id, flour.id, "0.06")

        self.assertEqual(result["error_code"], "INSUFFICIENT_STOCK")
        self.assertEqual(
            result["message"],
            "Insufficient stock available for Flour. Requested: 0.06 KG, Available: 0.04 KG",
        )
        self.assertEqual(result["details"]["available"], "0.04")

    def test_assign_counts_other_sections(self):
        self.sections.assign(self.kitchen.id, self.buns.id, 6)

        result = self.sections.assign(self.bar.id, self.buns.id, 5)

        self.assertEqual(result["error_code"], "INSUFFICIENT_STOCK")
        self.assertTrue(self.sections.assign(self.bar.id, self.buns.id, 4)["success"])
        self.assertEqual(self.available(), Decimal("0"))

    def test_assign_unknown_section_or_material(self):
        self.assertEqual(self.sections.assign(9999, self.buns.id, 1)["error_code"], "NOT_FOUND")
        self.assertEqual(self.sections.assign(self.kitchen.id, 9999, 1)["error_code"], "NOT_FOUND")

        closed = make_section("Closed patio", is_active=False)
        self.assertEqual(self.sections.assign(closed.id, self.buns.id, 1)["error_code"], "NOT_FOUND")

    def test_assign_rejects_non_positive_quantity(self):
        for quantity in (0, -2, "two"):
            with self.subTest(quantity=quantity):
                result = self.sections.assign(self.kitchen.id, self.buns.id, quantity)
                self.assertEqual(result["error_code"], "INVALID_QUANTITY")

    def test_plain_unit_assignment(self):
        flour = make_bulk_material()
        self.ledger.receive(flour.id, 25, "1.20")

        self.sections.assign(self.kitchen.id, flour.id, "7.5")

        self.assertEqual(self.available(flour), Decimal("17.5"))
        self.assertEqual(self.transfers().get().reason, "Stock assigned to section")


class UpdateAssignmentTests(SectionTestCase):

    def setUp(self):
        super().setUp()
        self.sections.assign(self.kitchen.id, self.buns.id, 2)
        self.inventory_id = self.row().id

    def test_increase_moves_stock_into_section(self):
        result = self.sections.update_assignment(self.inventory_id, 4)

        self.assertTrue(result["success"])
        self.assertEqual(result["data"]["delta"], "48")
        self.assertEqual(self.row().quantity, Decimal("96"))
        self.assertEqual(self.available(), Decimal("144"))

        movement = self.transfers().last()
        self.assertEqual(movement.to_section, self.kitchen)
        self.assertEqual(movement.quantity, Decimal("48"))

    def test_reduction_moves_stock_out_of_section(self):
        result = self.sections.update_assignment(self.inventory_id, 1)

        self.assertEqual(result["data"]["delta"], "-24")
        self.assertEqual(self.row().quantity, Decimal("24"))
        self.assertEqual(self.available(), Decimal("216"))

        movement = self.transfers().last()
        self.assertEqual(movement.from_section, self.kitchen)
        self.assertIsNone(movement.to_section)
        self.assertEqual(movement.quantity, Decimal("24"))

    def test_unchanged_quantity_emits_nothing(self):
        result = self.sections.update_assignment(self.inventory_id, 2)

        self.assertTrue(result["success"])
        self.assertEqual(result["data"]["movements"], [])
        self.assertEqual(self.transfers().count(), 1)

    def test_increase_beyond_available_is_refused(self):
        result = self.sections.update_assignment(self.inventory_id, 11)

        self.assertEqual(result["error_code"], "INSUFFICIENT_STOCK")
        self.assertEqual(self.row().quantity, Decimal("48"))
        self.assertEqual(self.transfers().count(), 1)

    def test_set_to_zero_keeps_row(self):
        self.sections.update_assignment(self.inventory_id, 0)

        self.assertEqual(self.row().quantity, Decimal("0"))
        self.assertEqual(self.available(), Decimal("240"))

    def test_unknown_inventory_row(self):
        self.assertEqual(self.sections.update_assignment(9999, 1)["error_code"], "NOT_FOUND")


class RemoveAssignmentTests(SectionTestCase):

    def test_remove_returns_stock_and_logs_movement(self):
        self.sections.assign(self.kitchen.id, self.buns.id, 2)
        inventory_id = self.row().id

        result = self.sections.remove_assignment(inventory_id, removed_by=self.user, notes="Station closed")

        self.assertTrue(result["success"])
        self.assertEqual(result["data"]["removed_quantity"], "48")
        self.assertFalse(SectionInventory.objects.exists())
        self.assertEqual(self.available(), Decimal("240"))

        movement = self.transfers().last()
        self.assertEqual(movement.from_section, self.kitchen)
        self.assertEqual(movement.quantity, Decimal("48"))
        self.assertEqual(movement.reason, "Station closed (2.0 PACKS = 48 PIECES)")

    def test_remove_empty_row_emits_nothing(self):
        self.sections.assign(self.kitchen.id, self.buns.id, 1)
        self.sections.update_assignment(self.row().id, 0)

        self.sections.remove_assignment(self.row().id)

        self.assertEqual(self.transfers().count(), 2)

    def test_remove_unknown_row(self):
        self.assertEqual(self.sections.remove_assignment(9999)["error_code"], "NOT_FOUND")


class SectionTransferTests(SectionTestCase):

    def setUp(self):
        super().setUp()
        self.sections.assign(self.kitchen.id, self.buns.id, 2)

    def test_transfer_between_sections(self):
        result = self.sections.transfer(self.kitchen.id, self.bar.id, self.buns.id, 20)

        self.assertTrue(result["success"])
        self.assertEqual(self.row(self.kitchen).quantity, Decimal("28"))
        self.assertEqual(self.row(self.bar).quantity, Decimal("20"))
        self.assertEqual(self.available(), Decimal("192"))

        movement = self.transfers().last()
        self.assertEqual((movement.from_section, movement.to_section), (self.kitchen, self.bar))

    def test_transfer_more_than_section_holds(self):
        result = self.sections.transfer(self.kitchen.id, self.bar.id, self.buns.id, 49)

        self.assertEqual(result["error_code"], "INSUFFICIENT_SECTION_STOCK")
        self.assertIn("Available: 48, Requested: 49", result["message"])
        self.assertFalse(SectionInventory.objects.filter(section=self.bar).exists())

    def test_transfer_validation(self):
        same = self.sections.transfer(self.kitchen.id, self.kitchen.id, self.buns.id, 1)
        self.assertEqual(same["error_code"], "VALIDATION_ERROR")

        missing = self.sections.transfer(self.bar.id, self.kitchen.id, self.buns.id, 1)
        self.assertEqual(missing["error_code"], "NOT_FOUND")


class SectionInventoryReadTests(SectionTestCase):

    def test_get_section_inventory(self):
        flour = make_bulk_material()
        self.ledger.receive(flour.id, 10, "1.20")
        self.sections.assign(self.kitchen.id, self.buns.id, 2)
        self.sections.assign(self.kitchen.id, flour.id, 3)

        result = self.sections.get_section_inventory(self.kitchen.id)

        self.assertTrue(result["success"])
        data = result["data"]
        self.assertEqual(data["count"], 2)
        rows = {r["raw_material"]["name"]: r for r in data["inventory"]}
        self.assertEqual(rows["Burger buns"]["pack_quantity"], "2.0")
        self.assertEqual(rows["Burger buns"]["unit"], "PIECES")
        self.assertNotIn("pack_quantity", rows["Flour"])
        self.assertEqual(rows["Flour"]["quantity"], "3")

    def test_unknown_section(self):
        self.assertEqual(self.sections.get_section_inventory(9999)["error_code"], "NOT_FOUND")
