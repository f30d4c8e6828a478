import tempfile
import unittest
from pathlib import Path

from watchfiles import Change

from chat2md.sync.file_watcher import FileWatcher, has_transcript_changes, is_transcript_change


class TranscriptChangeFilterTests(unittest.TestCase):
    def test_top_level_transcripts_count(self) -> None:
        self.assertTrue(is_transcript_change("/p/-Users-alice-dev-blog/a.jsonl"))
        self.assertFalse(is_transcript_change("/p/-Users-alice-dev-blog/a/subagents/agent-1.jsonl"))
        self.assertFalse(is_transcript_change("/p/-Users-alice-dev-blog/sessions-index.json"))

    def test_batch_with_deleted_transcript_triggers(self) -> None:
        changes = {
            (Change.modified, "/p/-Users-alice-dev-blog/sessions-index.json"),
            (Change.deleted, "/p/-Users-alice-dev-blog/c.jsonl"),
        }

        self.assertTrue(has_transcript_changes(changes))

    def test_batch_without_transcripts_is_ignored(self) -> None:
        changes = {
            (Change.modified, "/p/-Users-alice-dev-blog/a/subagents/agent-1.jsonl"),
            (Change.added, "/p/-Users-alice-dev-blog/notes.md"),
        }

        self.assertFalse(has_transcript_changes(changes))
        self.assertFalse(has_transcript_changes(set()))


class FileWatcherTests(unittest.IsolatedAsyncioTestCase):
    async def test_missing_directory_does_not_start(self) -> None:
        watcher = FileWatcher()
        with tempfile.TemporaryDirectory() as tmp:
            await watcher.start(object(), Path(tmp) / "missing")

        self.assertFalse(watcher.is_running)


if __name__ == "__main__":
    unittest.main()
