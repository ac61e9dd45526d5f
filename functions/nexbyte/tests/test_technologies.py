import unittest

from fastapi.testclient import TestClient

from nexbyte.app import create_app
from nexbyte.config import Settings
from nexbyte.mailer import InMemoryEmailSender
from nexbyte.store import InMemoryDocumentStore


class TechnologyApiTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        app = create_app(
            Settings(use_in_memory_backends=True),
            store=self.store,
            sender=InMemoryEmailSender(),
        )
        self.client = TestClient(app)

    def _create(self, name, **extra):
        response = self.client.post("/api/technologies", json={"name": name, **extra})
        self.assertEqual(response.status_code, 201)
        return response.json()["id"]

    def _names(self, include_hidden=True):
        response = self.client.get(
            "/api/technologies", params={"includeHidden": str(include_hidden).lower()}
        )
        self.assertEqual(response.status_code, 200)
        return [doc["name"] for doc in response.json()["data"]]

    def test_create_defaults_and_starts_hidden(self):
        tech_id = self._create("Data Science", tagline="Learn data")
        doc = self.store.get("career_technologies", tech_id)
        self.assertFalse(doc["isVisible"])
        self.assertEqual(doc["tagline"], "Learn data")
        self.assertEqual(doc["faqs"], [])
        self.assertEqual(doc["sectionVisibility"], {})
        self.assertEqual(doc["order"], 0)
        self.assertEqual(self._names(include_hidden=False), [])
        self.assertEqual(self._names(), ["Data Science"])

    def test_missing_name_is_rejected(self):
        response = self.client.post("/api/technologies", json={"tagline": "x"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(), {"success": False, "message": "name is required"}
        )
        self.assertEqual(self.store.count("career_technologies"), 0)

    def test_edit_hides_until_republished(self):
        tech_id = self._create("Cloud")
        self.client.put(f"/api/technologies/{tech_id}/visibility", json={"isVisible": True})
        self.assertEqual(self._names(include_hidden=False), ["Cloud"])

        response = self.client.put(
            f"/api/technologies/{tech_id}", json={"tagline": "New", "isVisible": True}
        )
        self.assertEqual(response.status_code, 200)
        doc = self.store.get("career_technologies", tech_id)
        self.assertFalse(doc["isVisible"])
        self.assertEqual(doc["tagline"], "New")

    def test_visibility_toggle_changes_only_the_flag(self):
        tech_id = self._create("AI")
        before = self.store.get("career_technologies", tech_id)
        self.client.put(f"/api/technologies/{tech_id}/visibility", json={"isVisible": True})
        after = self.store.get("career_technologies", tech_id)
        before["isVisible"] = True
        self.assertEqual(before, after)

    def test_reorder_changes_list_order(self):
        a_id = self._create("A")
        b_id = self._create("B")
        self.assertEqual(self._names(), ["A", "B"])

        response = self.client.put(
            "/api/technologies/reorder",
            json={"technologies": [{"_id": b_id, "order": 0}, {"id": a_id, "order": 1}]},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], {"updated": 2})
        self.assertEqual(self._names(), ["B", "A"])

    def test_reorder_accepts_bare_list_and_skips_unknown_ids(self):
        a_id = self._create("A")
        response = self.client.put(
            "/api/technologies/reorder",
            json=[{"id": a_id, "order": 3}, {"id": "ghost", "order": 4}],
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], {"updated": 1})
        self.assertEqual(self.store.get("career_technologies", a_id)["order"], 3)

    def test_sections_upsert_and_embed(self):
        tech_id = self._create("Security")
        created = self.client.post(
            f"/api/technologies/{tech_id}/sections",
            json={"title": "Intro", "order": 1},
        )
        self.assertEqual(created.status_code, 201)
        section_id = created.json()["id"]

        updated = self.client.post(
            f"/api/technologies/{tech_id}/sections",
            json={"title": "Introduction", "order": 1, "sectionId": section_id},
        )
        self.assertEqual(updated.status_code, 200)

        self.client.post(
            f"/api/technologies/{tech_id}/sections", json={"title": "First", "order": 0}
        )
        detail = self.client.get(f"/api/technologies/{tech_id}").json()["data"]
        self.assertEqual(
            [section["title"] for section in detail["sections"]], ["First", "Introduction"]
        )
        self.assertEqual(detail["sections"][1]["type"], "text")

    def test_section_for_missing_technology_is_404(self):
        response = self.client.post(
            "/api/technologies/nope/sections", json={"title": "Intro"}
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Technology not found")

    def test_delete_cascades_to_sections(self):
        tech_id = self._create("Blockchain")
        other_id = self._create("Other")
        for title in ("One", "Two"):
            self.client.post(f"/api/technologies/{tech_id}/sections", json={"title": title})
        self.client.post(f"/api/technologies/{other_id}/sections", json={"title": "Keep"})

        response = self.client.delete(f"/api/technologies/{tech_id}")
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(self.store.get("career_technologies", tech_id))
        self.assertEqual(self.store.count("career_sections", {"technologyId": tech_id}), 0)
        self.assertEqual(self.store.count("career_sections"), 1)

        listed = self.client.get(f"/api/technologies/{tech_id}/sections")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.json()["data"], [])

        again = self.client.delete(f"/api/technologies/{tech_id}")
        self.assertEqual(again.status_code, 404)

    def test_delete_single_section(self):
        tech_id = self._create("DevOps")
        section_id = self.client.post(
            f"/api/technologies/{tech_id}/sections", json={"title": "Tools"}
        ).json()["id"]
        response = self.client.delete(f"/api/technologies/sections/{section_id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.store.count("career_sections"), 0)


if __name__ == "__main__":
    unittest.main()
