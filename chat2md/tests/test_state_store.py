import json
import tempfile
import unittest
from pathlib import Path

from chat2md.sync.state_store import SyncStateStore


class SyncStateStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.base = Path(tmpdir.name)
        self.state_file = self.base / "state" / "sync_state.json"

    def _transcript(self, name: str = "s.jsonl") -> str:
        path = self.base / name
        path.write_text("{}\n", encoding="utf-8")
        return str(path)

    def test_unknown_path_defaults(self) -> None:
        store = SyncStateStore(self.state_file)
        store.load()

        self.assertEqual(store.get_last_line("/nope.jsonl"), 0)
        self.assertIsNone(store.get_last_synced_timestamp("/nope.jsonl"))
        self.assertEqual(store.tracked_count, 0)

    def test_save_and_load_round_trip(self) -> None:
        path = self._transcript()
        store = SyncStateStore(self.state_file)
        store.update_session(path, 12)
        store.save()

        reloaded = SyncStateStore(self.state_file)
        reloaded.load()

        self.assertEqual(reloaded.get_last_line(path), 12)
        self.assertEqual(reloaded.get_last_synced_timestamp(path), store.get_last_synced_timestamp(path))

        payload = json.loads(self.state_file.read_text(encoding="utf-8"))
        entry = payload["sessionStates"][path]
        self.assertEqual(entry["sessionPath"], path)
        self.assertEqual(entry["lastSyncedLine"], 12)
        self.assertIn("lastSyncedTimestamp", entry)

    def test_corrupt_file_loads_empty_state(self) -> None:
        self.state_file.parent.mkdir(parents=True)
        self.state_file.write_text("{garbage", encoding="utf-8")
        store = SyncStateStore(self.state_file)

        store.load()

        self.assertEqual(store.tracked_count, 0)

    def test_watermark_never_moves_backwards(self) -> None:
        path = self._transcript()
        store = SyncStateStore(self.state_file)
        store.update_session(path, 10)
        first_stamp = store.get_last_synced_timestamp(path)

        store.update_session(path, 4)

        self.assertEqual(store.get_last_line(path), 10)
        self.assertGreaterEqual(store.get_last_synced_timestamp(path), first_stamp)

    def test_reset_is_the_only_way_back_to_zero(self) -> None:
        path = self._transcript()
        store = SyncStateStore(self.state_file)
        store.update_session(path, 10)

        store.reset()
        store.update_session(path, 3)

        self.assertEqual(store.get_last_line(path), 3)

    def test_cleanup_orphans_drops_missing_files(self) -> None:
        kept = self._transcript("kept.jsonl")
        gone = self._transcript("gone.jsonl")
        store = SyncStateStore(self.state_file)
        store.update_session(kept, 1)
        store.update_session(gone, 2)
        Path(gone).unlink()

        removed = store.cleanup_orphans()

        self.assertEqual(removed, 1)
        self.assertEqual(store.get_last_line(kept), 1)
        self.assertNotIn(gone, store.snapshot().sessionStates)

    def test_save_leaves_no_temp_files(self) -> None:
        store = SyncStateStore(self.state_file)
        store.update_session(self._transcript(), 1)
        store.save()
        store.save()

        self.assertEqual([p.name for p in self.state_file.parent.iterdir()], ["sync_state.json"])


if __name__ == "__main__":
    unittest.main()
