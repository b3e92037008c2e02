import unittest

from db_fixtures import HR_EMAIL, SqliteDatabase, add_asset, add_hr, add_user

from services import credit_ledger, inventory_ledger
from services.errors import (
    InsufficientCreditError,
    InsufficientStockError,
    InvalidInputError,
    InventoryInvariantError,
    NotFoundError,
)


class InventoryLedgerTests(unittest.TestCase):
    def setUp(self):
        self.database = SqliteDatabase()
        self.db = self.database.session()
        self.asset = add_asset(self.db, quantity=5)

    def tearDown(self):
        self.database.close()

    def test_try_debit_takes_units_out_of_stock(self):
        inventory_ledger.try_debit(self.db, self.asset.AssetID, 3)
        self.db.commit()
        self.assertEqual(inventory_ledger.get_stock(self.db, self.asset.AssetID), (5, 2))

    def test_try_debit_refuses_more_than_available(self):
        inventory_ledger.try_debit(self.db, self.asset.AssetID, 3)
        with self.assertRaises(InsufficientStockError):
            inventory_ledger.try_debit(self.db, self.asset.AssetID, 3)
        self.db.commit()
        self.assertEqual(inventory_ledger.get_stock(self.db, self.asset.AssetID), (5, 2))

    def test_try_debit_unknown_asset_is_not_found(self):
        with self.assertRaises(NotFoundError):
            inventory_ledger.try_debit(self.db, 9999, 1)

    def test_try_debit_rejects_non_positive_quantity(self):
        with self.assertRaises(InvalidInputError):
            inventory_ledger.try_debit(self.db, self.asset.AssetID, 0)

    def test_adjust_available_never_exceeds_total(self):
        with self.assertRaises(InventoryInvariantError):
            inventory_ledger.adjust_available(self.db, self.asset.AssetID, 1)
        self.db.rollback()
        self.assertEqual(inventory_ledger.get_stock(self.db, self.asset.AssetID), (5, 5))

    def test_adjust_available_never_goes_negative(self):
        inventory_ledger.try_debit(self.db, self.asset.AssetID, 5)
        inventory_ledger.adjust_available(self.db, self.asset.AssetID, 2)
        with self.assertRaises(InventoryInvariantError):
            inventory_ledger.adjust_available(self.db, self.asset.AssetID, -3)
        self.db.commit()
        self.assertEqual(inventory_ledger.get_stock(self.db, self.asset.AssetID), (5, 2))

    def test_set_total_moves_available_by_the_same_delta(self):
        inventory_ledger.try_debit(self.db, self.asset.AssetID, 3)
        inventory_ledger.set_total(self.db, self.asset.AssetID, 8)
        self.db.commit()
        self.assertEqual(inventory_ledger.get_stock(self.db, self.asset.AssetID), (8, 5))

        inventory_ledger.set_total(self.db, self.asset.AssetID, 3)
        self.db.commit()
        self.assertEqual(inventory_ledger.get_stock(self.db, self.asset.AssetID), (3, 0))

    def test_set_total_refuses_to_drop_below_checked_out_units(self):
        inventory_ledger.try_debit(self.db, self.asset.AssetID, 3)
        with self.assertRaises(InvalidInputError):
            inventory_ledger.set_total(self.db, self.asset.AssetID, 2)
        self.db.commit()
        self.assertEqual(inventory_ledger.get_stock(self.db, self.asset.AssetID), (5, 2))


class CreditLedgerTests(unittest.TestCase):
    def setUp(self):
        self.database = SqliteDatabase()
        self.db = self.database.session()
        add_hr(self.db, package_limit=1)

    def tearDown(self):
        self.database.close()

    def test_try_debit_consumes_one_credit_then_refuses(self):
        credit_ledger.try_debit(self.db, HR_EMAIL, 1)
        with self.assertRaises(InsufficientCreditError):
            credit_ledger.try_debit(self.db, HR_EMAIL, 1)
        self.db.commit()
        self.assertEqual(credit_ledger.get_balance(self.db, HR_EMAIL)["packageLimit"], 0)

    def test_try_debit_refuses_non_hr_accounts(self):
        add_user(self.db, email="plain@acme.test", package_limit=3)
        with self.assertRaises(InsufficientCreditError):
            credit_ledger.try_debit(self.db, "plain@acme.test", 1)

    def test_credit_adds_limit_and_sets_subscription(self):
        credit_ledger.credit(self.db, HR_EMAIL, 10, subscription="standard")
        self.db.commit()
        balance = credit_ledger.get_balance(self.db, HR_EMAIL)
        self.assertEqual(balance["packageLimit"], 11)
        self.assertEqual(balance["subscription"], "standard")

    def test_credit_unknown_hr_is_not_found(self):
        with self.assertRaises(NotFoundError):
            credit_ledger.credit(self.db, "ghost@acme.test", 5)

    def test_get_balance_unknown_hr_is_not_found(self):
        with self.assertRaises(NotFoundError):
            credit_ledger.get_balance(self.db, "ghost@acme.test")


if __name__ == "__main__":
    unittest.main()
