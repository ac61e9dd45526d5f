import unittest

from fastapi.testclient import TestClient

from nexbyte.app import create_app
from nexbyte.config import Settings
from nexbyte.mailer import InMemoryEmailSender
from nexbyte.store import InMemoryDocumentStore

AUDIENCE = [{"name": "Asha", "mobile": "1"}, {"name": "Ravi", "mobile": "2"}]


class RewardApiTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        app = create_app(
            Settings(use_in_memory_backends=True),
            store=self.store,
            sender=InMemoryEmailSender(),
        )
        self.client = TestClient(app)

    def _create(self, title, **extra):
        response = self.client.post(
            "/api/rewards", json={"title": title, "audience": AUDIENCE, **extra}
        )
        self.assertEqual(response.status_code, 201)
        return response.json()["id"]

    def _active_count(self):
        return self.store.count("rewards", {"status": "active"})

    def test_new_reward_is_the_only_active_one(self):
        first = self._create("First")
        second = self._create("Second")
        self.assertEqual(self._active_count(), 1)
        self.assertEqual(self.store.get("rewards", first)["status"], "completed")

        active = self.client.get("/api/rewards/active").json()["data"]
        self.assertEqual(active["id"], second)
        self.assertEqual(active["riggedIndex"], -1)
        self.assertIsNone(active["winner"])
        self.assertIsNone(active["spinTriggeredAt"])

    def test_no_active_reward_is_404(self):
        response = self.client.get("/api/rewards/active")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "No active reward found")

    def test_rig_validates_audience_index(self):
        reward_id = self._create("Prize")
        ok = self.client.put(f"/api/rewards/{reward_id}/rig", json={"riggedIndex": 1})
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(self.store.get("rewards", reward_id)["riggedIndex"], 1)

        bad = self.client.put(f"/api/rewards/{reward_id}/rig", json={"riggedIndex": 5})
        self.assertEqual(bad.status_code, 400)

        cleared = self.client.put(
            f"/api/rewards/{reward_id}", json={"type": "rig", "riggedIndex": -1}
        )
        self.assertEqual(cleared.status_code, 200)
        self.assertEqual(self.store.get("rewards", reward_id)["riggedIndex"], -1)

    def test_spin_winner_and_reset(self):
        old = self._create("Old")
        reward_id = self._create("Prize")

        spin = self.client.put(f"/api/rewards/{reward_id}/trigger-spin")
        self.assertEqual(spin.status_code, 200)
        self.assertIsNotNone(self.store.get("rewards", reward_id)["spinTriggeredAt"])

        self.client.put(f"/api/rewards/{reward_id}/winner", json={"winner": AUDIENCE[0]})
        reward = self.store.get("rewards", reward_id)
        self.assertEqual(reward["status"], "completed")
        self.assertEqual(reward["winner"], AUDIENCE[0])
        self.assertEqual(self._active_count(), 0)

        again = self.client.put(f"/api/rewards/{reward_id}/trigger-spin")
        self.assertEqual(again.status_code, 400)

        # Reactivate the old reward, then reset the new one: only one stays active.
        self.store.update("rewards", old, {"status": "active"})
        reset = self.client.put(f"/api/rewards/{reward_id}", json={"type": "reset-spin"})
        self.assertEqual(reset.status_code, 200)
        reward = self.store.get("rewards", reward_id)
        self.assertEqual(reward["status"], "active")
        self.assertIsNone(reward["winner"])
        self.assertIsNone(reward["spinTriggeredAt"])
        self.assertEqual(self.store.get("rewards", old)["status"], "completed")
        self.assertEqual(self._active_count(), 1)

    def test_edit_cannot_change_status(self):
        reward_id = self._create("Prize")
        response = self.client.put(
            f"/api/rewards/{reward_id}",
            json={"type": "edit", "payload": {"title": "Renamed", "status": "completed"}},
        )
        self.assertEqual(response.status_code, 200)
        reward = self.store.get("rewards", reward_id)
        self.assertEqual(reward["title"], "Renamed")
        self.assertEqual(reward["status"], "active")

    def test_unknown_update_type_is_400(self):
        reward_id = self._create("Prize")
        response = self.client.put(f"/api/rewards/{reward_id}", json={"type": "explode"})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_missing_category_is_rejected(self):
        response = self.client.post(
            "/api/rewards", json={"title": "Prize", "categoryId": "nope"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.store.count("rewards"), 0)

    def test_category_in_use_cannot_be_deleted(self):
        category_id = self.client.post(
            "/api/rewards/categories", json={"name": "Weekly"}
        ).json()["id"]
        reward_id = self._create("Prize", categoryId=category_id)

        blocked = self.client.delete(f"/api/rewards/categories/{category_id}")
        self.assertEqual(blocked.status_code, 400)
        self.assertIsNotNone(self.store.get("reward_categories", category_id))

        listed = self.client.get("/api/rewards", params={"categoryId": category_id})
        self.assertEqual([r["id"] for r in listed.json()["data"]], [reward_id])

        self.client.delete(f"/api/rewards/{reward_id}")
        allowed = self.client.delete(f"/api/rewards/categories/{category_id}")
        self.assertEqual(allowed.status_code, 200)


if __name__ == "__main__":
    unittest.main()
