import unittest
from decimal import Decimal
from unittest import mock

from db_fixtures import HR_EMAIL, SqliteDatabase, add_hr

from sqlalchemy import func, select

from models.asset_models import Package, Payment
from services import credit_ledger, payment_reconciliation
from services.errors import InvalidInputError, NotFoundError, PaymentNotCompletedError
from services.payment_gateway import CheckoutSession


class FakeGateway:
    def __init__(self, sessions=None):
        self.sessions = dict(sessions or {})
        self.created = []

    def retrieve_session(self, session_id):
        return self.sessions[session_id]

    def create_checkout_session(self, **kwargs):
        self.created.append(kwargs)
        return CheckoutSession(
            session_id="cs_new",
            payment_status="unpaid",
            customer_email=kwargs["customer_email"],
            amount_total=kwargs["amount_cents"],
            payment_intent=None,
            metadata=kwargs["metadata"],
            url="https://checkout.test/cs_new",
        )


def paid_session(session_id="cs_paid", intent="pi_123", status="paid"):
    return CheckoutSession(
        session_id=session_id,
        payment_status=status,
        customer_email=HR_EMAIL,
        amount_total=800,
        payment_intent=intent,
        metadata={"packageName": "Standard", "employeeLimit": "10"},
    )


class PaymentReconciliationTests(unittest.TestCase):
    def setUp(self):
        self.database = SqliteDatabase()
        self.db = self.database.session()
        add_hr(self.db, package_limit=5)

    def tearDown(self):
        self.database.close()

    def _payment_count(self):
        return self.db.execute(select(func.count()).select_from(Payment)).scalar()

    def test_paid_session_credits_once_and_records_receipt(self):
        gateway = FakeGateway({"cs_paid": paid_session()})
        result = payment_reconciliation.reconcile(self.db, gateway, "cs_paid")

        self.assertFalse(result.already_recorded)
        payload = result.to_dict()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["transactionId"], "pi_123")
        self.assertEqual(payload["payment"]["amount"], 8.0)
        self.assertEqual(payload["payment"]["packageName"], "Standard")
        balance = credit_ledger.get_balance(self.db, HR_EMAIL)
        self.assertEqual(balance["packageLimit"], 15)
        self.assertEqual(balance["subscription"], "standard")

    def test_replayed_session_is_acknowledged_without_second_credit(self):
        gateway = FakeGateway({"cs_paid": paid_session()})
        payment_reconciliation.reconcile(self.db, gateway, "cs_paid")
        replay = payment_reconciliation.reconcile(self.db, gateway, "cs_paid")

        self.assertTrue(replay.already_recorded)
        self.assertEqual(replay.to_dict()["message"], "Payment already recorded")
        self.assertEqual(self._payment_count(), 1)
        self.assertEqual(credit_ledger.get_balance(self.db, HR_EMAIL)["packageLimit"], 15)

    def test_losing_insert_race_does_not_credit_twice(self):
        gateway = FakeGateway({"cs_paid": paid_session()})
        payment_reconciliation.reconcile(self.db, gateway, "cs_paid")

        with mock.patch.object(payment_reconciliation, "find_payment", side_effect=[None, self.db.execute(select(Payment)).scalars().one()]):
            result = payment_reconciliation.reconcile(self.db, gateway, "cs_paid")

        self.assertTrue(result.already_recorded)
        self.assertEqual(self._payment_count(), 1)
        self.assertEqual(credit_ledger.get_balance(self.db, HR_EMAIL)["packageLimit"], 15)

    def test_unpaid_session_changes_nothing(self):
        gateway = FakeGateway({"cs_open": paid_session(session_id="cs_open", status="unpaid")})
        with self.assertRaises(PaymentNotCompletedError):
            payment_reconciliation.reconcile(self.db, gateway, "cs_open")
        self.assertEqual(self._payment_count(), 0)
        self.assertEqual(credit_ledger.get_balance(self.db, HR_EMAIL)["packageLimit"], 5)

    def test_session_without_payment_intent_is_invalid(self):
        gateway = FakeGateway({"cs_paid": paid_session(intent=None)})
        with self.assertRaises(InvalidInputError):
            payment_reconciliation.reconcile(self.db, gateway, "cs_paid")
        with self.assertRaises(InvalidInputError):
            payment_reconciliation.reconcile(self.db, gateway, "  ")

    def test_start_checkout_uses_package_price_and_metadata(self):
        package = Package(Name="Basic", EmployeeLimit=5, Price=Decimal("5.00"), Features="Asset Tracking")
        self.db.add(package)
        self.db.commit()
        gateway = FakeGateway()

        url = payment_reconciliation.start_checkout(self.db, gateway, package.PackageID, HR_EMAIL)

        self.assertEqual(url, "https://checkout.test/cs_new")
        sent = gateway.created[0]
        self.assertEqual(sent["amount_cents"], 500)
        self.assertEqual(sent["customer_email"], HR_EMAIL)
        self.assertEqual(sent["metadata"]["employeeLimit"], "5")
        self.assertEqual(sent["metadata"]["packageName"], "Basic")

        with self.assertRaises(NotFoundError):
            payment_reconciliation.start_checkout(self.db, gateway, 9999, HR_EMAIL)

    def test_list_packages_orders_by_employee_limit(self):
        self.db.add_all([
            Package(Name="Premium", EmployeeLimit=20, Price=Decimal("15.00"), Features="A\nB"),
            Package(Name="Basic", EmployeeLimit=5, Price=Decimal("5.00"), Features=""),
        ])
        self.db.commit()
        packages = payment_reconciliation.list_packages(self.db)
        self.assertEqual([item["name"] for item in packages], ["Basic", "Premium"])
        self.assertEqual(packages[1]["features"], ["A", "B"])


class CheckoutSessionPayloadTests(unittest.TestCase):
    def test_from_payload_reads_expanded_intent_and_customer_details(self):
        session = CheckoutSession.from_payload(
            {
                "id": "cs_1",
                "payment_status": "paid",
                "customer_details": {"email": "hr@acme.test"},
                "amount_total": 1500,
                "payment_intent": {"id": "pi_9"},
                "metadata": {"employeeLimit": 20},
            }
        )
        self.assertEqual(session.customer_email, "hr@acme.test")
        self.assertEqual(session.payment_intent, "pi_9")
        self.assertEqual(session.metadata, {"employeeLimit": "20"})


if __name__ == "__main__":
    unittest.main()
