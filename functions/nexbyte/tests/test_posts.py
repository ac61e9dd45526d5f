import os
import tempfile
import threading
import unittest

from fastapi.testclient import TestClient

from nexbyte.app import create_app
from nexbyte.config import Settings
from nexbyte.mailer import InMemoryEmailSender
from nexbyte.routes.posts import run_post_command
from nexbyte.schemas import LikeCommand
from nexbyte.store import InMemoryDocumentStore, SqlDocumentStore


class PostApiTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        app = create_app(
            Settings(use_in_memory_backends=True),
            store=self.store,
            sender=InMemoryEmailSender(),
        )
        self.client = TestClient(app)

    def _create(self, base="/api/tech-posts", **fields):
        body = {"title": "Hello", "content": "World", **fields}
        response = self.client.post(base, json=body)
        self.assertEqual(response.status_code, 201)
        return response.json()["id"]

    def test_create_sets_engagement_defaults(self):
        post_id = self._create(category="AI")
        post = self.client.get(f"/api/tech-posts/{post_id}").json()["data"]
        self.assertEqual(post["likes"], 0)
        self.assertEqual(post["shares"], 0)
        self.assertEqual(post["comments"], [])
        self.assertTrue(post["commentsEnabled"])
        self.assertTrue(post["isVisible"])

    def test_content_is_required(self):
        response = self.client.post("/api/social-posts", json={"title": "Hi"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "content is required")
        self.assertEqual(self.store.count("social_posts"), 0)

    def test_every_like_is_counted(self):
        post_id = self._create()
        for expected in range(1, 6):
            response = self.client.put(f"/api/tech-posts/{post_id}", json={"type": "like"})
            self.assertEqual(response.json()["data"], {"likes": expected})
        self.assertEqual(self.store.get("tech_posts", post_id)["likes"], 5)

    def test_share_counts(self):
        post_id = self._create("/api/ai-posts")
        self.client.put(f"/api/ai-posts/{post_id}", json={"type": "share"})
        self.client.put(f"/api/ai-posts/{post_id}", json={"type": "share"})
        self.assertEqual(self.store.get("ai_posts", post_id)["shares"], 2)

    def test_comment_and_disabled_comments(self):
        post_id = self._create()
        response = self.client.put(
            f"/api/tech-posts/{post_id}",
            json={"type": "comment", "payload": {"text": "Nice post"}},
        )
        self.assertEqual(response.status_code, 200)
        comment = response.json()["data"]
        self.assertEqual(comment["author"], "Anonymous")
        self.assertIn("id", comment)

        self.client.put(
            f"/api/tech-posts/{post_id}",
            json={"type": "comments-toggle", "payload": {"commentsEnabled": False}},
        )
        blocked = self.client.put(
            f"/api/tech-posts/{post_id}",
            json={"type": "comment", "payload": {"author": "Bo", "text": "Hi"}},
        )
        self.assertEqual(blocked.status_code, 400)
        self.assertEqual(len(self.store.get("tech_posts", post_id)["comments"]), 1)

    def test_edit_cannot_reset_counters(self):
        post_id = self._create()
        self.client.put(f"/api/tech-posts/{post_id}", json={"type": "like"})
        self.client.put(
            f"/api/tech-posts/{post_id}",
            json={"type": "edit", "payload": {"title": "Edited", "likes": 0}},
        )
        post = self.store.get("tech_posts", post_id)
        self.assertEqual(post["title"], "Edited")
        self.assertEqual(post["likes"], 1)

    def test_visibility_splits_public_and_admin_lists(self):
        shown = self._create(title="Shown")
        hidden = self._create(title="Hidden")
        self.client.put(
            f"/api/tech-posts/{hidden}",
            json={"type": "visibility", "payload": {"isVisible": False}},
        )
        public = [p["id"] for p in self.client.get("/api/tech-posts").json()["data"]]
        admin = [p["id"] for p in self.client.get("/api/tech-posts/admin").json()["data"]]
        self.assertEqual(public, [shown])
        self.assertCountEqual(admin, [shown, hidden])

    def test_unknown_command_and_missing_post(self):
        post_id = self._create()
        unknown = self.client.put(f"/api/tech-posts/{post_id}", json={"type": "boost"})
        self.assertEqual(unknown.status_code, 400)
        missing = self.client.put("/api/tech-posts/nope", json={"type": "like"})
        self.assertEqual(missing.status_code, 404)

    def test_feeds_are_separate(self):
        self._create("/api/social-posts")
        self.assertEqual(self.client.get("/api/tech-posts").json()["data"], [])
        self.assertEqual(len(self.client.get("/api/social-posts").json()["data"]), 1)

    def test_categories_and_tech_subcategories(self):
        category_id = self.client.post(
            "/api/tech-posts/categories", json={"name": "Cloud"}
        ).json()["id"]
        created = self.client.post(
            "/api/tech-posts/subcategories",
            json={"name": "AWS", "categoryId": category_id},
        )
        self.assertEqual(created.status_code, 201)
        listed = self.client.get(
            "/api/tech-posts/subcategories", params={"categoryId": category_id}
        ).json()["data"]
        self.assertEqual([s["name"] for s in listed], ["AWS"])

        orphan = self.client.post(
            "/api/tech-posts/subcategories", json={"name": "X", "categoryId": "nope"}
        )
        self.assertEqual(orphan.status_code, 404)

        # Only tech posts have subcategories; elsewhere the path is a post id.
        self.assertEqual(
            self.client.get("/api/social-posts/subcategories").status_code, 404
        )

    def test_delete_post(self):
        post_id = self._create()
        self.assertEqual(self.client.delete(f"/api/tech-posts/{post_id}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/tech-posts/{post_id}").status_code, 404)


class ConcurrentLikeTests(unittest.TestCase):
    """Likes arriving at the same time from many requests all land."""

    def _like_concurrently(self, store):
        post_id = store.insert("tech_posts", {"title": "Hot", "likes": 0})

        def like():
            for _ in range(20):
                run_post_command(store, "tech_posts", post_id, LikeCommand(type="like"))

        threads = [threading.Thread(target=like) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return store.get("tech_posts", post_id)["likes"]

    def test_in_memory_store(self):
        self.assertEqual(self._like_concurrently(InMemoryDocumentStore()), 160)

    def test_sqlite_file_store(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        store = SqlDocumentStore(f"sqlite+pysqlite:///{os.path.join(tmp.name, 'posts.db')}")
        self.addCleanup(lambda: store._engine and store._engine.dispose())
        self.assertEqual(self._like_concurrently(store), 160)


if __name__ == "__main__":
    unittest.main()
