import unittest

from db_fixtures import EMPLOYEE_EMAIL, HR_EMAIL, SqliteDatabase, add_asset, add_hr, add_user

from fastapi.testclient import TestClient

import AssetVerse as app_module
from services.identity_service import issue_token, verify_token
from services.payment_gateway import CheckoutSession


def bearer(email):
    return {"Authorization": f"Bearer {issue_token(email)}"}


class StaticGateway:
    def __init__(self, session):
        self.session = session

    def retrieve_session(self, session_id):
        return self.session


class ApiFlowTests(unittest.TestCase):
    def setUp(self):
        self.database = SqliteDatabase()
        self.db = self.database.session()
        add_hr(self.db, package_limit=2)
        add_user(self.db)
        self.asset = add_asset(self.db, quantity=5)
        self.gateway = StaticGateway(
            CheckoutSession(
                session_id="cs_1",
                payment_status="paid",
                customer_email=HR_EMAIL,
                amount_total=500,
                payment_intent="pi_1",
                metadata={"packageName": "Basic", "employeeLimit": "5"},
            )
        )
        app_module.app.dependency_overrides[app_module.get_asset_db] = lambda: self.db
        app_module.app.dependency_overrides[app_module.get_payment_gateway] = lambda: self.gateway
        self.client = TestClient(app_module.app)

    def tearDown(self):
        app_module.app.dependency_overrides.clear()
        self.database.close()

    def _create_request(self, quantity=1):
        response = self.client.post(
            "/api/requests",
            json={
                "assetId": self.asset.AssetID,
                "assetQTY": quantity,
                "requesterEmail": EMPLOYEE_EMAIL,
                "requesterName": "Alex",
                "hrEmail": HR_EMAIL,
            },
            headers=bearer(EMPLOYEE_EMAIL),
        )
        self.assertEqual(response.status_code, 200)
        return response.json()

    def test_healthz_is_public(self):
        self.assertEqual(self.client.get("/healthz").json(), {"status": "ok"})
        self.assertEqual(self.client.get("/api/healthz").status_code, 200)

    def test_missing_or_forged_token_is_unauthorized(self):
        self.assertEqual(self.client.post("/api/requests", json={}).status_code, 401)
        forged = {"Authorization": "Bearer abc.def"}
        self.assertEqual(self.client.get("/api/hr/credit", headers=forged).status_code, 401)

    def test_expired_token_is_rejected(self):
        token = issue_token(HR_EMAIL, ttl_seconds=-1)
        self.assertIsNone(verify_token(token))
        response = self.client.get("/api/hr/credit", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)

    def test_hr_routes_refuse_employees(self):
        response = self.client.get("/api/hr/credit", headers=bearer(EMPLOYEE_EMAIL))
        self.assertEqual(response.status_code, 403)

    def test_request_approve_return_flow(self):
        created = self._create_request(quantity=2)
        self.assertEqual(created["requestStatus"], "pending")

        decided = self.client.patch(
            f"/api/requests/{created['requestID']}/decision",
            json={"decision": "approved"},
            headers=bearer(HR_EMAIL),
        )
        self.assertEqual(decided.status_code, 200)
        body = decided.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["request"]["requestStatus"], "approved")
        self.assertEqual(body["assignment"]["assetQuantity"], 2)

        credit = self.client.get("/api/hr/credit", headers=bearer(HR_EMAIL)).json()
        self.assertEqual(credit["packageLimit"], 1)

        again = self.client.patch(
            f"/api/requests/{created['requestID']}/decision",
            json={"decision": "approved"},
            headers=bearer(HR_EMAIL),
        )
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["code"], "AlreadyProcessed")

        returned = self.client.patch(
            f"/api/assigned-assets/{body['assignment']['assignmentID']}/return",
            headers=bearer(EMPLOYEE_EMAIL),
        )
        self.assertEqual(returned.status_code, 200)
        self.assertEqual(returned.json()["request"]["requestStatus"], "returned")

        roster = self.client.get("/api/hr/employees", headers=bearer(HR_EMAIL)).json()
        self.assertEqual(roster[0]["employeeEmail"], EMPLOYEE_EMAIL)
        self.assertEqual(roster[0]["assetsCount"], 1)

    def test_business_errors_map_to_status_codes(self):
        created = self._create_request(quantity=6)
        response = self.client.patch(
            f"/api/requests/{created['requestID']}/decision",
            json={"decision": "approved"},
            headers=bearer(HR_EMAIL),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"detail": "Not enough stock", "code": "InsufficientStock"})

        missing = self.client.patch("/api/requests/999/decision", json={"decision": "approved"}, headers=bearer(HR_EMAIL))
        self.assertEqual(missing.status_code, 404)

        mismatch = self.client.post(
            "/api/requests",
            json={"assetId": self.asset.AssetID, "requesterEmail": "someone@else.test"},
            headers=bearer(EMPLOYEE_EMAIL),
        )
        self.assertEqual(mismatch.status_code, 400)
        self.assertEqual(mismatch.json()["code"], "InvalidInput")

    def test_credit_exhaustion_is_forbidden(self):
        for _ in range(2):
            created = self._create_request()
            ok = self.client.patch(
                f"/api/requests/{created['requestID']}/decision",
                json={"decision": "approved"},
                headers=bearer(HR_EMAIL),
            )
            self.assertEqual(ok.status_code, 200)

        created = self._create_request()
        refused = self.client.patch(
            f"/api/requests/{created['requestID']}/decision",
            json={"decision": "approved"},
            headers=bearer(HR_EMAIL),
        )
        self.assertEqual(refused.status_code, 403)
        self.assertEqual(refused.json()["code"], "InsufficientCredit")

    def test_asset_quantity_edit_route(self):
        response = self.client.patch(
            f"/api/assets/{self.asset.AssetID}",
            json={"productQuantity": 8},
            headers=bearer(HR_EMAIL),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["availableQuantity"], 8)

    def test_reconcile_twice_credits_once(self):
        first = self.client.patch("/api/payments/reconcile", params={"session_id": "cs_1"})
        self.assertEqual(first.status_code, 200)
        self.assertFalse(first.json()["alreadyRecorded"])

        second = self.client.patch("/api/payments/reconcile", params={"session_id": "cs_1"})
        self.assertEqual(second.status_code, 200)
        self.assertTrue(second.json()["alreadyRecorded"])

        credit = self.client.get("/api/hr/credit", headers=bearer(HR_EMAIL)).json()
        self.assertEqual(credit["packageLimit"], 7)
        self.assertEqual(credit["subscription"], "basic")

    def test_reconcile_unpaid_session(self):
        self.gateway.session.payment_status = "unpaid"
        response = self.client.patch("/api/payments/reconcile", params={"session_id": "cs_1"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "PaymentNotCompleted")

    def test_register_routes_report_existing_accounts(self):
        first = self.client.post("/api/users", json={"email": "new@acme.test", "displayName": "New"})
        self.assertEqual(first.json()["message"], "user created")
        second = self.client.post("/api/users", json={"email": "new@acme.test"})
        self.assertEqual(second.json()["message"], "user exists")


if __name__ == "__main__":
    unittest.main()
