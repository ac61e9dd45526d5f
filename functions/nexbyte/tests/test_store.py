import os
import tempfile
import threading
import unittest
from unittest.mock import patch

from bson import ObjectId
from pymongo import errors as mongo_errors

from nexbyte.store import (
    DeleteManyOp,
    DeleteOp,
    InMemoryDocumentStore,
    InsertOp,
    MongoDocumentStore,
    SqlDocumentStore,
    StoreError,
    UpdateManyOp,
    UpdateOp,
    matches,
    sort_documents,
)


class StoreBehaviour:
    """Checks every DocumentStore implementation must pass."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()

    def test_insert_generates_id_and_ignores_client_id(self):
        doc_id = self.store.insert("things", {"id": "mine", "_id": "x", "name": "a"})
        self.assertNotEqual(doc_id, "mine")
        doc = self.store.get("things", doc_id)
        self.assertEqual(doc["id"], doc_id)
        self.assertEqual(doc["name"], "a")
        self.assertNotIn("_id", doc)

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.store.get("things", "does-not-exist"))

    def test_update_merges_and_keeps_id(self):
        doc_id = self.store.insert("things", {"name": "a", "order": 1})
        self.assertTrue(self.store.update("things", doc_id, {"order": 2, "id": "other"}))
        doc = self.store.get("things", doc_id)
        self.assertEqual(doc, {"id": doc_id, "name": "a", "order": 2})
        self.assertFalse(self.store.update("things", "missing", {"order": 3}))

    def test_find_filters_and_sorts(self):
        self.store.insert("things", {"name": "b", "isVisible": True, "order": 2})
        self.store.insert("things", {"name": "a", "isVisible": False, "order": 1})
        self.store.insert("things", {"name": "c"})

        visible = self.store.find(
            "things", {"isVisible": {"$ne": False}}, sort=[("order", 1)]
        )
        # Missing order sorts first.
        self.assertEqual([doc["name"] for doc in visible], ["c", "b"])

        picked = self.store.find("things", {"name": {"$in": ["a", "c"]}}, sort=[("name", -1)])
        self.assertEqual([doc["name"] for doc in picked], ["c", "a"])

        self.assertEqual(self.store.count("things"), 3)
        self.assertEqual(len(self.store.find("things", limit=2)), 2)
        self.assertEqual(self.store.find_one("things", {"name": "b"})["order"], 2)

    def test_increment_counts_every_call(self):
        doc_id = self.store.insert("posts", {"likes": 0})
        for _ in range(5):
            self.assertTrue(self.store.increment("posts", doc_id, "likes"))
        self.assertEqual(self.store.get("posts", doc_id)["likes"], 5)
        self.assertFalse(self.store.increment("posts", "missing", "likes"))

    def test_append_adds_to_list(self):
        doc_id = self.store.insert("posts", {"comments": []})
        self.store.append("posts", doc_id, "comments", {"text": "one"})
        self.store.append("posts", doc_id, "comments", {"text": "two"})
        comments = self.store.get("posts", doc_id)["comments"]
        self.assertEqual([c["text"] for c in comments], ["one", "two"])

    def test_update_many_and_delete_many(self):
        for status in ("active", "active", "completed"):
            self.store.insert("rewards", {"status": status})
        changed = self.store.update_many(
            "rewards", {"status": "active"}, {"status": "completed"}
        )
        self.assertEqual(changed, 2)
        self.assertEqual(self.store.count("rewards", {"status": "completed"}), 3)
        self.assertEqual(self.store.delete_many("rewards", {"status": "completed"}), 3)
        self.assertEqual(self.store.count("rewards"), 0)

    def test_delete_reports_missing(self):
        doc_id = self.store.insert("things", {"name": "a"})
        self.assertTrue(self.store.delete("things", doc_id))
        self.assertFalse(self.store.delete("things", doc_id))

    def test_apply_returns_results_in_order(self):
        tech_id = self.store.insert("techs", {"name": "t"})
        self.store.insert("sections", {"technologyId": tech_id})
        self.store.insert("sections", {"technologyId": tech_id})
        results = self.store.apply(
            [
                UpdateManyOp("techs", {}, {"seen": True}),
                InsertOp("techs", {"name": "u"}),
                UpdateOp("techs", tech_id, {"name": "t2"}),
                DeleteOp("techs", tech_id),
                DeleteManyOp("sections", {"technologyId": tech_id}),
            ]
        )
        self.assertEqual(results[0], 1)
        self.assertIsInstance(results[1], str)
        self.assertEqual(results[2:], [True, True, 2])
        self.assertEqual(self.store.count("sections"), 0)

    def test_apply_is_all_or_nothing(self):
        with self.assertRaises(TypeError):
            self.store.apply([InsertOp("things", {"name": "a"}), object()])
        self.assertEqual(self.store.count("things"), 0)

    def test_concurrent_increments_and_appends_are_not_lost(self):
        doc_id = self.store.insert("tech_posts", {"likes": 0, "comments": []})

        def click(worker):
            for n in range(20):
                self.store.increment("tech_posts", doc_id, "likes")
                self.store.append("tech_posts", doc_id, "comments", {"n": f"{worker}-{n}"})

        threads = [threading.Thread(target=click, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        doc = self.store.get("tech_posts", doc_id)
        self.assertEqual(doc["likes"], 160)
        self.assertEqual(len(doc["comments"]), 160)


class InMemoryStoreTests(StoreBehaviour, unittest.TestCase):
    def make_store(self):
        return InMemoryDocumentStore()

    def test_reset_clears_everything(self):
        self.store.insert("things", {"name": "a"})
        self.store.reset()
        self.assertEqual(self.store.count("things"), 0)

    def test_returned_documents_are_copies(self):
        doc_id = self.store.insert("things", {"tags": ["a"]})
        doc = self.store.get("things", doc_id)
        doc["tags"].append("b")
        self.assertEqual(self.store.get("things", doc_id)["tags"], ["a"])


class SqliteStoreTests(StoreBehaviour, unittest.TestCase):
    def make_store(self):
        return SqlDocumentStore("sqlite+pysqlite:///:memory:")

    def test_ping_connects_lazily(self):
        store = SqlDocumentStore("sqlite+pysqlite:///:memory:")
        self.assertIsNone(store._engine)
        self.assertTrue(store.ping())
        self.assertIsNotNone(store._engine)


class SqliteFileStoreTests(StoreBehaviour, unittest.TestCase):
    """A file database gives each thread its own connection, as in production."""

    def make_store(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        store = SqlDocumentStore(f"sqlite+pysqlite:///{os.path.join(tmp.name, 'nexbyte.db')}")
        self.addCleanup(lambda: store._engine and store._engine.dispose())
        return store


class MongoStoreTests(unittest.TestCase):
    """Query translation and connection handling, without a live server."""

    def test_query_translates_ids_to_object_ids(self):
        oid = ObjectId()
        other = ObjectId()
        query = MongoDocumentStore._query(
            {"id": {"$ne": str(oid)}, "status": "active"}
        )
        self.assertEqual(query, {"_id": {"$ne": oid}, "status": "active"})
        query = MongoDocumentStore._query({"_id": {"$in": [str(oid), str(other)]}})
        self.assertEqual(query, {"_id": {"$in": [oid, other]}})

    def test_documents_expose_string_id(self):
        oid = ObjectId()
        doc = MongoDocumentStore._to_document({"_id": oid, "name": "a"})
        self.assertEqual(doc, {"id": str(oid), "name": "a"})

    @patch("nexbyte.store.MongoClient")
    def test_connect_is_lazy_and_memoized(self, client_cls):
        store = MongoDocumentStore("mongodb://db.example:27017", "nexbyte")
        client_cls.assert_not_called()
        store.connect()
        store.connect()
        client_cls.assert_called_once()
        self.assertTrue(client_cls.call_args.kwargs["tz_aware"])

    @patch("nexbyte.store.MongoClient")
    def test_unreachable_server_raises_store_error(self, client_cls):
        client_cls.return_value.admin.command.side_effect = (
            mongo_errors.ServerSelectionTimeoutError("no servers")
        )
        store = MongoDocumentStore("mongodb://db.example:27017", "nexbyte")
        with self.assertRaises(StoreError):
            store.connect()

    @patch("nexbyte.store.MongoClient")
    def test_batch_without_transactions_logs_warning(self, client_cls):
        store = MongoDocumentStore("mongodb://db.example:27017", "nexbyte")
        collection = client_cls.return_value.__getitem__.return_value.__getitem__.return_value
        collection.delete_one.return_value.deleted_count = 1
        with self.assertLogs("nexbyte.store", level="WARNING"):
            results = store.apply([DeleteOp("things", str(ObjectId()))])
        self.assertEqual(results, [True])


class FilterHelperTests(unittest.TestCase):
    def test_ne_matches_missing_field(self):
        self.assertTrue(matches({}, {"isHidden": {"$ne": True}}))
        self.assertFalse(matches({"isHidden": True}, {"isHidden": {"$ne": True}}))

    def test_sort_is_stable_across_keys(self):
        docs = [
            {"name": "b", "order": 1},
            {"name": "a", "order": 1},
            {"name": "z", "order": 0},
        ]
        ordered = sort_documents(docs, [("order", 1), ("name", 1)])
        self.assertEqual([doc["name"] for doc in ordered], ["z", "a", "b"])


if __name__ == "__main__":
    unittest.main()
