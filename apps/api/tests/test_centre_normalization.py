"""Centre identifier normalization tests."""

from __future__ import annotations

import unittest

from slotdesk.domain.centres import job_centre_id, normalize_centre_id, normalize_centre_ids
from slotdesk.schemas.centre import Centre
from slotdesk.schemas.job import Job, JobStatus


class NormalizeCentreIdTests(unittest.TestCase):
    def test_spellings_of_the_same_centre_collapse(self) -> None:
        for raw in ("A & B Test Centre", "A and B Test Centre", "a-b-test-centre", "  a  b   TEST centre "):
            with self.subTest(raw=raw):
                self.assertEqual(normalize_centre_id(raw), "a-b-test-centre")

    def test_result_is_a_fixed_point(self) -> None:
        for raw in ("Acme Centre", "St. Mary's (North)", "Hill & Dale", "x--y__z"):
            with self.subTest(raw=raw):
                once = normalize_centre_id(raw)
                self.assertEqual(normalize_centre_id(once), once)

    def test_punctuation_runs_become_single_hyphens(self) -> None:
        self.assertEqual(normalize_centre_id("St. Mary's (North)"), "st-mary-s-north")
        self.assertEqual(normalize_centre_id("--Acme--"), "acme")

    def test_empty_and_missing_values(self) -> None:
        self.assertEqual(normalize_centre_id(""), "")
        self.assertEqual(normalize_centre_id(None), "")
        self.assertEqual(normalize_centre_id("---"), "")

    def test_lone_connective_is_kept(self) -> None:
        self.assertEqual(normalize_centre_id("and"), "and")

    def test_list_normalization_drops_blanks_and_duplicates_in_order(self) -> None:
        self.assertEqual(
            normalize_centre_ids(["B Test Centre", "", "Acme Centre", "b-test-centre", "  "]),
            ["b-test-centre", "acme-centre"],
        )
        self.assertEqual(normalize_centre_ids("acme"), [])


class JobCentreIdTests(unittest.TestCase):
    def test_explicit_id_wins_over_name(self) -> None:
        job = Job(id="job-1", status=JobStatus.OPEN, centre_id="Acme Centre", centre_name="Other")
        self.assertEqual(job_centre_id(job), "acme-centre")

    def test_falls_back_to_name_then_first_desired_centre(self) -> None:
        by_name = Job(id="job-1", status=JobStatus.OPEN, centre_name="Hill & Dale")
        by_desired = Job.model_validate({"id": "job-2", "status": "open", "desired_centres": "B Test Centre, Acme"})
        neither = Job(id="job-3", status=JobStatus.OPEN)

        self.assertEqual(job_centre_id(by_name), "hill-dale")
        self.assertEqual(job_centre_id(by_desired), "b-test-centre")
        self.assertEqual(job_centre_id(neither), "")


class CentreSchemaTests(unittest.TestCase):
    def test_centre_entry_derives_id_from_name(self) -> None:
        centre = Centre.model_validate({"name": "  A & B Test Centre ", "region": "north"})

        self.assertEqual(centre.id, "a-b-test-centre")
        self.assertEqual(centre.name, "A & B Test Centre")
        self.assertFalse(centre.deleted)
        self.assertEqual(centre.model_dump()["region"], "north")


if __name__ == "__main__":
    unittest.main()
