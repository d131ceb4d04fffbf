# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
# Standard library imports
import os
import unittest
from types import SimpleNamespace
from unittest.mock import patch, MagicMock

# Third-party library imports
from functions_framework import create_app
from firebase_functions import https_fn

# Local application imports
# This patch must be applied before importing 'main'
with patch("firebase_admin.initialize_app"):
    import main
from backend.config import get_settings
from backend.dependencies import build_trigger_dispatcher, reset_dependencies
from backend.identity import InMemoryIdentityProvider
from backend.locks import InMemoryDateLock
from backend.mail import InMemoryEmailTransport
from backend.store import EventKind, InMemoryDocumentStore
from shared.types import CallerIdentity

MAIN_PATH = os.path.join(os.path.dirname(__file__), "main.py")

ADMIN = CallerIdentity(uid="admin1", display_name="Ada", role="Admin")
STAFF = CallerIdentity(uid="staff1", display_name="Sam", role="Kitchen Staff")


def _snapshot(data):
    snapshot = MagicMock()
    snapshot.exists = data is not None
    snapshot.to_dict.return_value = data
    return snapshot


def _use_in_memory_backends(test_case: unittest.TestCase) -> None:
    env = patch.dict(os.environ, {"USE_IN_MEMORY_BACKENDS": "true"})
    env.start()
    get_settings.cache_clear()
    reset_dependencies()
    test_case.addCleanup(env.stop)
    test_case.addCleanup(get_settings.cache_clear)
    test_case.addCleanup(reset_dependencies)


class TestMainUnauthenticatedCalls(unittest.TestCase):

    @patch("firebase_admin.initialize_app")
    def setUp(self, initialize_app_mock):
        _use_in_memory_backends(self)
        self.generate_lists_client = create_app(
            "generate_lists", MAIN_PATH
        ).test_client()
        self.set_user_role_client = create_app(
            "set_user_role", MAIN_PATH
        ).test_client()

    def test_generate_lists_requires_auth(self):
        response = self.generate_lists_client.post(
            "/", json={"data": {"dateString": "2025-03-14", "selectedDishRefs": []}}
        )

        self.assertEqual(response.status_code, 401)
        error = response.get_json()["error"]
        self.assertEqual(error["status"], "UNAUTHENTICATED")
        self.assertEqual(error["message"], "You must be logged in to generate lists.")

    def test_set_user_role_requires_auth(self):
        response = self.set_user_role_client.post(
            "/", json={"data": {"uid": "u2", "newRole": "Admin"}}
        )

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"]["status"], "UNAUTHENTICATED")


class TestMainCallerIdentity(unittest.TestCase):

    def test_anonymous_request_has_no_caller(self):
        self.assertIsNone(main._caller_identity(None))

    def test_reads_name_and_role_claims(self):
        auth = SimpleNamespace(uid="u1", token={"name": "Ann", "role": "Admin"})

        caller = main._caller_identity(auth)

        self.assertEqual(caller, CallerIdentity(uid="u1", display_name="Ann", role="Admin"))
        self.assertTrue(caller.is_admin)

    def test_missing_claims_are_none(self):
        caller = main._caller_identity(SimpleNamespace(uid="u1", token={}))

        self.assertIsNone(caller.display_name)
        self.assertIsNone(caller.role)


class TestMainGenerateLists(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryDocumentStore(
            {
                "dishes/d1": {"dishName": "Soup"},
                "dishes/d1/prepTasks/t1": {"taskName": "Chop onions"},
                "dishes/d1/prepTasks/t2": {
                    "taskName": "Order stock",
                    "isStockRequisition": True,
                },
            }
        )
        store_patch = patch.object(main, "get_document_store", return_value=self.store)
        lock_patch = patch.object(main, "get_date_lock", return_value=InMemoryDateLock())
        store_patch.start()
        lock_patch.start()
        self.addCleanup(store_patch.stop)
        self.addCleanup(lock_patch.stop)

    def test_generate_lists_returns_camel_case_result(self):
        result = main._generate_lists(
            {"dateString": "2025-03-14", "selectedDishRefs": ["dishes/d1"]}, STAFF
        )

        self.assertEqual(
            result, {"success": True, "message": "Lists generated successfully."}
        )
        prep = self.store.query("dailyTodoLists/2025-03-14/prepTasks")
        requisitions = self.store.query("dailyTodoLists/2025-03-14/stockRequisitions")
        self.assertEqual([doc.data["taskName"] for doc in prep], ["Chop onions"])
        self.assertEqual(
            [doc.data["taskName"] for doc in requisitions], ["Order stock"]
        )

    def test_missing_date_is_invalid_argument(self):
        with self.assertRaises(https_fn.HttpsError) as context:
            main._generate_lists({"selectedDishRefs": []}, STAFF)

        self.assertEqual(
            context.exception.code, https_fn.FunctionsErrorCode.INVALID_ARGUMENT
        )

    def test_non_object_payload_is_invalid_argument(self):
        with self.assertRaises(https_fn.HttpsError) as context:
            main._generate_lists("2025-03-14", STAFF)

        self.assertEqual(
            context.exception.code, https_fn.FunctionsErrorCode.INVALID_ARGUMENT
        )

    def test_store_failure_is_internal(self):
        self.store.commit = MagicMock(side_effect=RuntimeError("boom"))

        with self.assertRaises(https_fn.HttpsError) as context:
            main._generate_lists({"dateString": "2025-03-14"}, STAFF)

        self.assertEqual(context.exception.code, https_fn.FunctionsErrorCode.INTERNAL)
        self.assertEqual(context.exception.message, "Failed to generate lists.")


class TestMainSendOrderEmail(unittest.TestCase):

    def setUp(self):
        self.transport = InMemoryEmailTransport(sender_email="orders@example.test")
        transport_patch = patch.object(main, "get_email_transport", return_value=self.transport)
        transport_patch.start()
        self.addCleanup(transport_patch.stop)

    def test_send_order_email(self):
        result = main._send_order_email(
            {
                "recipientEmail": "supplier@example.test",
                "subject": "Order",
                "body": "<p>2 crates</p>",
            },
            STAFF,
        )

        self.assertEqual(result, {"success": True, "message": "Email sent successfully!"})
        self.assertEqual(len(self.transport.sent), 1)
        self.assertEqual(self.transport.sent[0].recipient, "supplier@example.test")

    def test_transport_failure_is_internal(self):
        self.transport.fail_with = RuntimeError("rejected")

        with self.assertRaises(https_fn.HttpsError) as context:
            main._send_order_email({"recipientEmail": "supplier@example.test"}, STAFF)

        self.assertEqual(context.exception.code, https_fn.FunctionsErrorCode.INTERNAL)
        self.assertEqual(context.exception.message, "Error sending email.")


class TestMainSetUserRole(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.identity = InMemoryIdentityProvider()
        self.identity.add_user("u2", role="Kitchen Staff")
        for target, value in (
            ("get_document_store", self.store),
            ("get_identity_provider", self.identity),
        ):
            patcher = patch.object(main, target, return_value=value)
            patcher.start()
            self.addCleanup(patcher.stop)

    def test_admin_sets_role(self):
        result = main._set_user_role({"uid": "u2", "newRole": "Admin"}, ADMIN)

        self.assertEqual(
            result, {"result": "Success! User u2 has been given the role of Admin."}
        )
        self.assertEqual(self.identity.claims["u2"], {"role": "Admin"})
        self.assertEqual(self.store.get("users/u2").data, {"role": "Admin"})

    def test_non_admin_is_permission_denied(self):
        with self.assertRaises(https_fn.HttpsError) as context:
            main._set_user_role({"uid": "u2", "newRole": "Admin"}, STAFF)

        self.assertEqual(
            context.exception.code, https_fn.FunctionsErrorCode.PERMISSION_DENIED
        )
        self.assertEqual(self.identity.claims["u2"], {"role": "Kitchen Staff"})


class TestMainTriggers(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryDocumentStore(
            {
                "users/staff1": {"role": "Kitchen Staff"},
                "users/admin1": {"role": "Admin"},
                "users/guest": {"role": "Guest"},
            }
        )
        dispatcher = build_trigger_dispatcher(self.store)
        patcher = patch.object(main, "get_trigger_dispatcher", return_value=dispatcher)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_document_change_binds_path_from_params(self):
        change = main._document_change(
            EventKind.UPDATED,
            "inventoryItems/{itemId}",
            {"itemId": "milk"},
            _snapshot({"quantityOnHand": 3}),
            _snapshot(None),
        )

        self.assertEqual(change.path, "inventoryItems/milk")
        self.assertEqual(change.before, {"quantityOnHand": 3})
        self.assertIsNone(change.after)
        self.assertEqual(change.params, {"itemId": "milk"})

    def test_requisition_created_notifies_staff_and_admins(self):
        handled = main._requisition_created(
            {"date": "2025-03-14", "requisitionId": "r1"},
            _snapshot({"taskName": "Flour"}),
        )

        self.assertEqual(handled, 1)
        for uid in ("staff1", "admin1"):
            notifications = self.store.query(f"users/{uid}/notifications")
            self.assertEqual(len(notifications), 1)
            self.assertEqual(
                notifications[0].data["body"], "Flour has been requested for 2025-03-14."
            )
        self.assertEqual(self.store.query("users/guest/notifications"), [])

    def test_requisition_without_data_is_ignored(self):
        self.assertEqual(
            main._requisition_created({"date": "2025-03-14", "requisitionId": "r1"}, None), 0
        )

    def test_inventory_item_updated_creates_suggestion(self):
        before = {"itemName": "Milk", "quantityOnHand": 10, "minStockLevel": 5, "parLevel": 20}
        after = {**before, "quantityOnHand": 3}

        with patch("backend.ordering.today_key", return_value="2025-03-14"):
            handled = main._inventory_item_updated(
                {"itemId": "milk"}, _snapshot(before), _snapshot(after)
            )

        self.assertEqual(handled, 1)
        suggestions = self.store.query("dailyOrderingSuggestions/2025-03-14/suggestions")
        self.assertEqual(len(suggestions), 1)
        self.assertEqual(suggestions[0].data["quantityToOrder"], 17)


if __name__ == "__main__":
    unittest.main()
