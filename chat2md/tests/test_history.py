import json
import tempfile
import unittest
from pathlib import Path

from chat2md.sync.history import MAX_HISTORY_ENTRIES, SyncHistoryStore


class SyncHistoryStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.history_file = Path(tmpdir.name) / "sync_history.json"

    def test_ring_keeps_newest_entries(self) -> None:
        store = SyncHistoryStore()
        for i in range(MAX_HISTORY_ENTRIES + 5):
            store.add_success(i)

        entries = store.recent_entries()

        self.assertEqual(len(store), 48)
        self.assertEqual(entries[0].filesProcessed, 5)
        self.assertEqual(entries[-1].filesProcessed, MAX_HISTORY_ENTRIES + 4)
        self.assertEqual(store.last_entry.filesProcessed, MAX_HISTORY_ENTRIES + 4)

    def test_helpers_set_status_and_fields(self) -> None:
        store = SyncHistoryStore()

        success = store.add_success(3)
        failure = store.add_failure("disk full")
        skipped = store.add_skipped()

        self.assertEqual((success.status, success.filesProcessed, success.errorMessage), ("success", 3, None))
        self.assertEqual((failure.status, failure.filesProcessed, failure.errorMessage), ("failure", 0, "disk full"))
        self.assertEqual((skipped.status, skipped.filesProcessed), ("skipped", 0))
        self.assertEqual(len({success.id, failure.id, skipped.id}), 3)
        self.assertIsNotNone(success.timestamp.tzinfo)

    def test_recent_entries_limit_returns_tail(self) -> None:
        store = SyncHistoryStore()
        for i in range(5):
            store.add_success(i)

        self.assertEqual([e.filesProcessed for e in store.recent_entries(limit=2)], [3, 4])

    def test_entries_persist_across_instances(self) -> None:
        store = SyncHistoryStore(self.history_file)
        store.add_success(2)
        store.add_failure("boom")

        reloaded = SyncHistoryStore(self.history_file)
        reloaded.load()

        self.assertEqual([e.status for e in reloaded.recent_entries()], ["success", "failure"])
        payload = json.loads(self.history_file.read_text(encoding="utf-8"))
        self.assertEqual(payload["entries"][1]["errorMessage"], "boom")

    def test_corrupt_history_file_is_discarded(self) -> None:
        self.history_file.write_text("not json", encoding="utf-8")
        store = SyncHistoryStore(self.history_file)

        store.load()

        self.assertEqual(len(store), 0)

    def test_clear_empties_and_persists(self) -> None:
        store = SyncHistoryStore(self.history_file)
        store.add_skipped()

        store.clear()

        self.assertIsNone(store.last_entry)
        reloaded = SyncHistoryStore(self.history_file)
        reloaded.load()
        self.assertEqual(len(reloaded), 0)


if __name__ == "__main__":
    unittest.main()
