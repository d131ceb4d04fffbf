import threading
import unittest
from unittest.mock import MagicMock

from backend.daily_lists import (
    GENERATION_FAILED_MESSAGE,
    LISTS_GENERATED_MESSAGE,
    generate_lists,
)
from backend.errors import ErrorCode, ServiceError
from backend.locks import InMemoryDateLock, LockUnavailableError
from backend.store import InMemoryDocumentStore, StoreError
from shared.types import CallerIdentity

DATE = "2025-03-14"
PREP = f"dailyTodoLists/{DATE}/prepTasks"
REQUISITIONS = f"dailyTodoLists/{DATE}/stockRequisitions"
CALLER = CallerIdentity(uid="u1", display_name="Sam", role="Kitchen Staff")


def _seed():
    return {
        "dishes/soup": {"dishName": "Soup"},
        "dishes/soup/prepTasks/t1": {"taskName": "Chop onions", "note": "fine"},
        "dishes/soup/prepTasks/t2": {"taskName": "Stock", "isStockRequisition": True},
        "dishes/bread": {"dishName": "Bread"},
        "dishes/bread/prepTasks/t1": {"taskName": "Proof dough", "isStockRequisition": False},
        "dishes/nameless": {},
        "dishes/nameless/prepTasks/t1": {"taskName": "Mystery"},
        "floor_checklist_items/c2": {"name": "Polish glasses", "order": 2},
        "floor_checklist_items/c1": {"name": "Stock ice", "order": 1},
        f"{PREP}/old": {"taskName": "Yesterday's leftover"},
        f"{REQUISITIONS}/old": {"taskName": "Old requisition"},
    }


def _contents(store, collection):
    """Task contents without ids or timestamps, for comparing runs."""
    return sorted(
        (
            tuple(sorted((k, v) for k, v in doc.data.items() if k != "createdAt"))
            for doc in store.query(collection)
        ),
        key=repr,
    )


class GenerateListsTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore(_seed())
        self.lock = InMemoryDateLock()

    def _generate(self, refs, date=DATE, caller=CALLER):
        return generate_lists(self.store, self.lock, caller, date, refs)

    def test_replaces_existing_tasks(self):
        result = self._generate(["dishes/soup", "dishes/bread"])

        self.assertTrue(result.success)
        self.assertEqual(result.message, LISTS_GENERATED_MESSAGE)
        prep_names = sorted(doc.data["taskName"] for doc in self.store.query(PREP))
        self.assertEqual(
            prep_names, ["Chop onions", "Polish glasses", "Proof dough", "Stock ice"]
        )
        requisitions = self.store.query(REQUISITIONS)
        self.assertEqual([doc.data["taskName"] for doc in requisitions], ["Stock"])
        self.assertEqual(requisitions[0].data["dishName"], "Soup")

    def test_dish_task_copies_template_fields(self):
        self._generate(["soup"])

        chop = next(
            doc.data for doc in self.store.query(PREP)
            if doc.data["taskName"] == "Chop onions"
        )
        self.assertEqual(chop["note"], "fine")
        self.assertEqual(chop["dishName"], "Soup")
        self.assertFalse(chop["isCompleted"])
        self.assertIn("createdAt", chop)

    def test_list_document_records_creator(self):
        self._generate([])

        list_doc = self.store.get(f"dailyTodoLists/{DATE}").data
        self.assertEqual(list_doc["date"], DATE)
        self.assertEqual(list_doc["createdBy"], "Sam")
        self.assertIn("createdAt", list_doc)

    def test_caller_without_name_is_unknown_user(self):
        self._generate([], caller=CallerIdentity(uid="u2"))

        self.assertEqual(
            self.store.get(f"dailyTodoLists/{DATE}").data["createdBy"], "Unknown User"
        )

    def test_is_idempotent(self):
        self._generate(["dishes/soup", "dishes/bread"])
        first = (_contents(self.store, PREP), _contents(self.store, REQUISITIONS))

        self._generate(["dishes/soup", "dishes/bread"])
        second = (_contents(self.store, PREP), _contents(self.store, REQUISITIONS))

        self.assertEqual(first, second)

    def test_truthy_flag_places_task_in_requisitions(self):
        self.store = InMemoryDocumentStore(
            {
                "dishes/pie": {"dishName": "Pie"},
                "dishes/pie/prepTasks/t1": {"taskName": "Butter", "isStockRequisition": 1},
                "dishes/pie/prepTasks/t2": {"taskName": "Roll", "isStockRequisition": 0},
            }
        )

        self._generate(["dishes/pie"])

        self.assertEqual(
            [doc.data["taskName"] for doc in self.store.query(REQUISITIONS)], ["Butter"]
        )
        self.assertEqual(
            [doc.data["taskName"] for doc in self.store.query(PREP)], ["Roll"]
        )

    def test_missing_dish_is_skipped(self):
        result = self._generate(["dishes/does-not-exist", "dishes/bread"])

        self.assertTrue(result.success)
        prep_names = sorted(doc.data["taskName"] for doc in self.store.query(PREP))
        self.assertEqual(prep_names, ["Polish glasses", "Proof dough", "Stock ice"])

    def test_dish_without_name_uses_its_id(self):
        self._generate(["dishes/nameless"])

        mystery = next(
            doc.data for doc in self.store.query(PREP)
            if doc.data["taskName"] == "Mystery"
        )
        self.assertEqual(mystery["dishName"], "nameless")

    def test_checklist_tasks_always_present(self):
        for refs in ([], None, ["dishes/soup"]):
            self._generate(refs)
            bar_tasks = [
                doc.data for doc in self.store.query(PREP)
                if doc.data.get("category") == "Bar"
            ]
            self.assertEqual(
                sorted(task["taskName"] for task in bar_tasks),
                ["Polish glasses", "Stock ice"],
            )
            for task in bar_tasks:
                self.assertEqual(task["dishName"], "Bar")
                self.assertEqual(task["note"], "")
                self.assertFalse(task["isCompleted"])

    def test_duplicate_refs_contribute_twice(self):
        self._generate(["dishes/bread", "bread"])

        proofs = [
            doc for doc in self.store.query(PREP)
            if doc.data["taskName"] == "Proof dough"
        ]
        self.assertEqual(len(proofs), 2)

    def test_requires_caller(self):
        with self.assertRaises(ServiceError) as context:
            self._generate([], caller=None)

        self.assertEqual(context.exception.code, ErrorCode.UNAUTHENTICATED)

    def test_missing_or_empty_date_writes_nothing(self):
        before = dict(self.store.documents)
        for date in ("", None):
            with self.assertRaises(ServiceError) as context:
                self._generate(["dishes/soup"], date=date)
            self.assertEqual(context.exception.code, ErrorCode.INVALID_ARGUMENT)
        self.assertEqual(self.store.documents, before)

    def test_invalid_arguments(self):
        for date, refs in (
            ("2025/03/14", []),
            (DATE, "dishes/soup"),
            (DATE, [42]),
            (DATE, ["dishes/soup/prepTasks"]),
        ):
            with self.assertRaises(ServiceError) as context:
                self._generate(refs, date=date)
            self.assertEqual(context.exception.code, ErrorCode.INVALID_ARGUMENT)

    def test_commit_failure_keeps_previous_lists(self):
        self.store.commit = MagicMock(side_effect=StoreError("unavailable"))

        with self.assertRaises(ServiceError) as context:
            self._generate(["dishes/soup"])

        self.assertEqual(context.exception.code, ErrorCode.INTERNAL)
        self.assertEqual(context.exception.message, GENERATION_FAILED_MESSAGE)
        self.assertEqual(
            [doc.data["taskName"] for doc in self.store.query(PREP)],
            ["Yesterday's leftover"],
        )

    def test_lock_timeout_is_internal(self):
        lock = MagicMock()
        lock.hold.side_effect = LockUnavailableError("busy")

        with self.assertRaises(ServiceError) as context:
            generate_lists(self.store, lock, CALLER, DATE, [])

        self.assertEqual(context.exception.code, ErrorCode.INTERNAL)
        lock.hold.assert_called_once_with(DATE)

    def test_concurrent_generations_do_not_interleave(self):
        errors = []

        def run():
            try:
                self._generate(["dishes/soup", "dishes/bread"])
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=run) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(self.store.query(PREP)), 4)
        self.assertEqual(len(self.store.query(REQUISITIONS)), 1)


if __name__ == "__main__":
    unittest.main()
