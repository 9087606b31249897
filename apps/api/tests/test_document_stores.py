"""Versioned document store tests."""

from __future__ import annotations

import base64
import json
import unittest

import httpx

from slotdesk.adapters.documents import (
    DocumentNotFoundError,
    DocumentStoreUnavailableError,
    GitHubContentsStore,
    VersionConflictError,
)
from slotdesk.repositories.memory import InMemoryDocumentStore


def _encoded(document) -> str:
    return base64.b64encode(json.dumps(document).encode("utf-8")).decode("ascii")


class InMemoryDocumentStoreTests(unittest.TestCase):
    def test_second_writer_with_stale_version_conflicts(self) -> None:
        store = InMemoryDocumentStore()
        version = store.seed("data/test_centres.json", [])

        first = store.write("data/test_centres.json", [{"id": "a"}], expected_version=version, message="first")
        with self.assertRaises(VersionConflictError) as ctx:
            store.write("data/test_centres.json", [{"id": "b"}], expected_version=version, message="second")

        self.assertEqual(ctx.exception.current_version, first)
        self.assertEqual(store.read("data/test_centres.json").document, [{"id": "a"}])
        self.assertEqual([write.message for write in store.writes], ["first"])

    def test_missing_document_is_created_only_without_expected_version(self) -> None:
        store = InMemoryDocumentStore()

        with self.assertRaises(DocumentNotFoundError):
            store.read("log/audit.json")
        with self.assertRaises(VersionConflictError):
            store.write("log/audit.json", [], expected_version="stale", message="append")

        version = store.write("log/audit.json", [], expected_version=None, message="create")
        self.assertEqual(store.read("log/audit.json").version, version)

    def test_identical_content_written_twice_gets_a_new_version(self) -> None:
        store = InMemoryDocumentStore()
        first = store.seed("doc.json", {"a": 1})
        second = store.write("doc.json", {"a": 1}, expected_version=first, message="same")

        self.assertNotEqual(first, second)

    def test_reads_return_copies(self) -> None:
        store = InMemoryDocumentStore()
        store.seed("doc.json", {"items": [1]})

        store.read("doc.json").document["items"].append(2)

        self.assertEqual(store.read("doc.json").document, {"items": [1]})

    def test_injected_failures(self) -> None:
        store = InMemoryDocumentStore()
        version = store.seed("doc.json", {})
        store.write_failures["doc.json"] = "store down"

        with self.assertRaises(DocumentStoreUnavailableError):
            store.write("doc.json", {"a": 1}, expected_version=version, message="fails once")
        store.write("doc.json", {"a": 1}, expected_version=version, message="succeeds")

        store.unavailable_paths.add("doc.json")
        with self.assertRaises(DocumentStoreUnavailableError):
            store.read("doc.json")


class GitHubContentsStoreTests(unittest.TestCase):
    def _store(self, handler) -> GitHubContentsStore:
        client = httpx.Client(transport=httpx.MockTransport(handler), base_url="https://api.github.test")
        return GitHubContentsStore(
            token="gh-token",
            owner="acme",
            repo="slot-data",
            branch="main",
            timeout_seconds=5,
            client=client,
        )

    def test_read_decodes_content_and_uses_blob_sha_as_version(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"sha": "abc123", "content": _encoded([{"id": "acme-centre"}])})

        current = self._store(handler).read("data/test_centres.json")

        self.assertEqual(current.document, [{"id": "acme-centre"}])
        self.assertEqual(current.version, "abc123")
        self.assertEqual(seen[0].url.path, "/repos/acme/slot-data/contents/data/test_centres.json")
        self.assertEqual(seen[0].url.params["ref"], "main")

    def test_write_sends_expected_sha_and_returns_new_one(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"content": {"sha": "def456"}})

        version = self._store(handler).write("data/test_centres.json", [], expected_version="abc123", message="msg")

        self.assertEqual(version, "def456")
        self.assertEqual(bodies[0]["sha"], "abc123")
        self.assertEqual(bodies[0]["branch"], "main")
        self.assertEqual(bodies[0]["message"], "msg")
        self.assertEqual(json.loads(base64.b64decode(bodies[0]["content"])), [])

    def test_first_write_omits_sha(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"content": {"sha": "new"}})

        self._store(handler).write("log/audit.json", [], expected_version=None, message="create")

        self.assertNotIn("sha", bodies[0])

    def test_stale_sha_maps_to_version_conflict(self) -> None:
        for status in (409, 422):
            with self.subTest(status=status):
                store = self._store(lambda request, status=status: httpx.Response(status, json={}))
                with self.assertRaises(VersionConflictError):
                    store.write("doc.json", {}, expected_version="old", message="msg")

    def test_missing_and_failing_documents(self) -> None:
        self.assertRaises(
            DocumentNotFoundError,
            self._store(lambda request: httpx.Response(404, json={})).read,
            "doc.json",
        )
        self.assertRaises(
            DocumentStoreUnavailableError,
            self._store(lambda request: httpx.Response(503, json={})).read,
            "doc.json",
        )

    def test_timeout_is_reported_as_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with self.assertRaises(DocumentStoreUnavailableError):
            self._store(handler).read("doc.json")


if __name__ == "__main__":
    unittest.main()
