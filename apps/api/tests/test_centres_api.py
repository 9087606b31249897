"""Centre list API tests: versioned writes, soft delete, restore and coverage cascade."""

from __future__ import annotations

import unittest

from support import (
    BOOKER_UNSET,
    BOOKER_X,
    BOOKER_Y,
    CENTRES_PATH,
    COVERAGE_DIR,
    MASTER,
    RECORDS_PATH,
    auth,
    build_harness,
    job_row,
)

CENTRES = [
    {"id": "acme-centre", "name": "Acme Centre", "deleted": False},
    {"id": "b-test-centre", "name": "B Test Centre", "deleted": False},
]


class CentresApiTests(unittest.TestCase):
    def _harness(self, **options):
        return build_harness(centres=[dict(centre) for centre in CENTRES], **options)

    def _sha(self, h) -> str:
        return h.client.get("/api/centres", headers=auth(MASTER)).json()["sha"]

    def _delete(self, h, centre_id: str):
        body = {"mode": "delete", "sha": self._sha(h), "ids": [centre_id]}
        return h.client.put("/api/centres", json=body, headers=auth(MASTER))

    def test_any_actor_lists_active_centres_but_only_master_sees_the_bin(self) -> None:
        h = self._harness()

        listed = h.client.get("/api/centres", headers=auth(BOOKER_X))
        bin_for_booker = h.client.get("/api/centres/bin", headers=auth(BOOKER_X))
        bin_for_master = h.client.get("/api/centres/bin", headers=auth(MASTER))

        self.assertEqual(listed.status_code, 200)
        self.assertEqual([centre["id"] for centre in listed.json()["centres"]], ["acme-centre", "b-test-centre"])
        self.assertEqual(listed.json()["sha"], h.documents.documents[CENTRES_PATH].version)
        self.assertEqual(bin_for_booker.status_code, 403)
        self.assertEqual(bin_for_master.json()["centres"], [])

    def test_append_with_current_version(self) -> None:
        h = self._harness()

        response = h.client.put(
            "/api/centres",
            json={"mode": "append", "sha": self._sha(h), "centres": [{"name": "Hill & Dale"}]},
            headers=auth(MASTER),
        )

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["changed"], ["hill-dale"])
        self.assertEqual(payload["count"], 3)
        self.assertEqual(payload["sha"], h.documents.documents[CENTRES_PATH].version)
        self.assertEqual(
            h.documents.documents[CENTRES_PATH].document[-1],
            {"id": "hill-dale", "name": "Hill & Dale", "deleted": False},
        )
        self.assertEqual(h.audit_entries()[-1]["action"], "centres.append")

    def test_stale_version_is_a_conflict_and_nothing_is_written(self) -> None:
        h = self._harness()
        writes_before = h.documents.write_count

        stale = h.client.put(
            "/api/centres",
            json={"mode": "append", "sha": "stale", "centres": [{"name": "Hill & Dale"}]},
            headers=auth(MASTER),
        )
        null_sha = h.client.put(
            "/api/centres",
            json={"mode": "append", "sha": None, "centres": [{"name": "Hill & Dale"}]},
            headers=auth(MASTER),
        )

        for response in (stale, null_sha):
            self.assertEqual(response.status_code, 409)
            self.assertEqual(response.json()["code"], "VERSION_CONFLICT")
            self.assertEqual(response.json()["details"]["action"], "reload")
        self.assertEqual(stale.json()["details"]["current_version"], h.documents.documents[CENTRES_PATH].version)
        self.assertEqual(h.documents.write_count, writes_before)

    def test_first_append_creates_the_list(self) -> None:
        h = build_harness()

        empty = h.client.get("/api/centres", headers=auth(MASTER)).json()
        created = h.client.put(
            "/api/centres",
            json={"mode": "append", "sha": None, "centres": [{"name": "Acme Centre"}]},
            headers=auth(MASTER),
        )

        self.assertEqual(empty, {"centres": [], "sha": None})
        self.assertEqual(created.status_code, 200)
        self.assertEqual(created.json()["changed"], ["acme-centre"])

    def test_duplicates_are_rejected_with_a_restore_hint_for_deleted_centres(self) -> None:
        h = self._harness()

        active = h.client.put(
            "/api/centres",
            json={"mode": "append", "sha": self._sha(h), "centres": [{"name": "ACME  centre"}]},
            headers=auth(MASTER),
        )
        self._delete(h, "acme-centre")
        deleted = h.client.put(
            "/api/centres",
            json={"mode": "append", "sha": self._sha(h), "centres": [{"name": "Acme Centre"}]},
            headers=auth(MASTER),
        )

        self.assertEqual(active.status_code, 400)
        self.assertEqual(active.json()["code"], "DUPLICATE_CENTRE")
        self.assertFalse(active.json()["details"]["deleted"])
        self.assertEqual(deleted.json()["code"], "DUPLICATE_CENTRE")
        self.assertTrue(deleted.json()["details"]["deleted"])
        self.assertIn("restore", deleted.json()["message"])

    def test_delete_soft_deletes_and_strips_coverage_from_bookers(self) -> None:
        h = self._harness()

        response = h.client.put(
            "/api/centres",
            json={"mode": "delete", "sha": self._sha(h), "ids": ["Acme Centre"]},
            headers=auth(MASTER),
        )

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["changed"], ["acme-centre"])
        self.assertEqual(payload["count"], 1)
        self.assertEqual(payload["removed_from_bookers"], 2)

        records = h.records()
        self.assertEqual(records[BOOKER_X]["coverage"], [])
        self.assertEqual(records[BOOKER_Y]["coverage"], ["b-test-centre"])

        bin_listing = h.client.get("/api/centres/bin", headers=auth(MASTER)).json()
        self.assertEqual([centre["id"] for centre in bin_listing["centres"]], ["acme-centre"])
        board = h.client.get("/api/jobs/board", headers=auth(BOOKER_X)).json()
        self.assertEqual(board["_meta"]["coverage"], [])
        self.assertEqual([entry["action"] for entry in h.audit_entries()], ["coverage.cascade", "centres.delete"])

    def test_delete_also_removes_coverage_that_comes_from_fallback_files(self) -> None:
        h = self._harness(jobs=(job_row("job-7"),))
        h.documents.seed(f"{COVERAGE_DIR}/{BOOKER_UNSET}.json", {"centres": ["acme-centre"]})
        headers = auth(BOOKER_UNSET)
        before = h.client.get("/api/jobs/board", headers=headers).json()

        self._delete(h, "acme-centre")

        board = h.client.get("/api/jobs/board", headers=headers).json()
        claim = h.client.post("/api/jobs/claim", json={"job_id": "job-7"}, headers=headers)
        self.assertEqual([job["id"] for job in before["jobs"]], ["job-7"])
        self.assertEqual(board["jobs"], [])
        self.assertEqual(board["_meta"]["coverage"], [])
        self.assertEqual(h.client.get("/api/my-centres", headers=headers).json(), {"centres": []})
        self.assertEqual(claim.status_code, 403)
        self.assertEqual(claim.json()["code"], "COVERAGE_MISMATCH")

    def test_restore_flips_the_flag_in_place_without_restoring_coverage(self) -> None:
        h = self._harness()
        self._delete(h, "acme-centre")

        restored = h.client.put(
            "/api/centres",
            json={"mode": "restore", "sha": self._sha(h), "ids": ["acme-centre"]},
            headers=auth(MASTER),
        )

        self.assertEqual(restored.status_code, 200)
        self.assertEqual(restored.json()["count"], 2)
        document = h.documents.documents[CENTRES_PATH].document
        self.assertEqual([centre["id"] for centre in document], ["acme-centre", "b-test-centre"])
        self.assertFalse(document[0]["deleted"])
        self.assertEqual(h.records()[BOOKER_X]["coverage"], [])

    def test_unknown_ids_are_rejected(self) -> None:
        h = self._harness()

        response = h.client.put(
            "/api/centres",
            json={"mode": "delete", "sha": self._sha(h), "ids": ["nowhere"]},
            headers=auth(MASTER),
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "UNKNOWN_CENTRE")
        self.assertEqual(response.json()["details"]["ids"], ["nowhere"])

    def test_failed_cascade_is_reported_and_repeating_the_delete_finishes_it(self) -> None:
        h = self._harness()
        h.documents.write_failures[RECORDS_PATH] = "records store down"

        partial = h.client.put(
            "/api/centres",
            json={"mode": "delete", "sha": self._sha(h), "ids": ["acme-centre"]},
            headers=auth(MASTER),
        )

        self.assertEqual(partial.status_code, 502)
        self.assertEqual(partial.json()["code"], "CASCADE_INCOMPLETE")
        self.assertEqual(partial.json()["details"]["sha"], h.documents.documents[CENTRES_PATH].version)
        self.assertTrue(h.documents.documents[CENTRES_PATH].document[0]["deleted"])
        self.assertEqual(h.records()[BOOKER_X]["coverage"], ["acme-centre"])
        incomplete = h.audit_entries()[-1]
        self.assertEqual(incomplete["action"], "centres.delete")
        self.assertEqual(incomplete["details"]["cascade"], "incomplete")

        repeated = h.client.put(
            "/api/centres",
            json={"mode": "delete", "sha": self._sha(h), "ids": ["acme-centre"]},
            headers=auth(MASTER),
        )

        self.assertEqual(repeated.status_code, 200)
        self.assertEqual(repeated.json()["removed_from_bookers"], 2)
        self.assertEqual(h.records()[BOOKER_X]["coverage"], [])

    def test_invalid_bodies_name_the_fields(self) -> None:
        h = self._harness()
        cases = [
            ({"mode": "bogus", "sha": None}, ["mode"]),
            ({"sha": None, "ids": ["acme-centre"]}, ["mode"]),
            ({"mode": "append", "centres": [{"name": "Hill"}]}, ["sha"]),
            ({"mode": "append", "sha": None, "centres": []}, ["centres"]),
            ({"mode": "delete", "sha": None, "ids": [" "]}, ["ids.0"]),
        ]
        for body, fields in cases:
            with self.subTest(body=body):
                response = h.client.put("/api/centres", json=body, headers=auth(MASTER))
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json()["code"], "VALIDATION_FAILED")
                self.assertEqual(response.json()["details"]["fields"], fields)

    def test_bookers_cannot_change_the_list(self) -> None:
        h = self._harness()

        response = h.client.put(
            "/api/centres",
            json={"mode": "append", "sha": self._sha(h), "centres": [{"name": "Hill"}]},
            headers=auth(BOOKER_X),
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "MASTER_REQUIRED")


if __name__ == "__main__":
    unittest.main()
