import json
import tempfile
import unittest
from pathlib import Path

from chat2md.project_names import ProjectIndexCache, ProjectNameResolver


class ProjectNameResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.base = Path(tmpdir.name)
        # Synthetic filesystem the folder-name decoder probes against.
        self.fs_root = self.base / "fs"
        self.projects = self.base / "projects"
        self.fs_root.mkdir()
        self.projects.mkdir()
        self.resolver = ProjectNameResolver(filesystem_root=self.fs_root)

    def _session(self, folder: str, session_id: str = "abc-123", lines: list | None = None) -> Path:
        path = self.projects / folder / f"{session_id}.jsonl"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("".join(json.dumps(line) + "\n" for line in (lines or [])), encoding="utf-8")
        return path

    def _index(self, folder: str, entries: list) -> Path:
        path = self.projects / folder / "sessions-index.json"
        path.write_text(json.dumps({"entries": entries}), encoding="utf-8")
        return path

    def test_folder_name_decodes_to_existing_directory(self) -> None:
        (self.fs_root / "Users" / "alice" / "dev" / "blog").mkdir(parents=True)
        session = self._session("-Users-alice-dev-blog")

        self.assertEqual(self.resolver.resolve_project_name(session), "blog")

    def test_hyphenated_project_name_is_preserved(self) -> None:
        (self.fs_root / "Users" / "alice" / "dev" / "my-app").mkdir(parents=True)

        self.assertEqual(self.resolver.resolve_from_folder_name("-Users-alice-dev-my-app"), "my-app")

    def test_longest_valid_project_name_wins(self) -> None:
        (self.fs_root / "work" / "data-pipeline").mkdir(parents=True)
        (self.fs_root / "work" / "data" / "pipeline").mkdir(parents=True)

        self.assertEqual(self.resolver.resolve_from_folder_name("-work-data-pipeline"), "data-pipeline")

    def test_unvalidated_folder_name_returns_last_segment(self) -> None:
        self.assertEqual(self.resolver.resolve_from_folder_name("-Users-bob-code-thing"), "thing")

    def test_plain_folder_name_is_returned_unchanged(self) -> None:
        self.assertEqual(self.resolver.resolve_from_folder_name("scratch"), "scratch")

    def test_index_entry_wins_over_folder_heuristic(self) -> None:
        (self.fs_root / "Users" / "alice" / "dev" / "blog").mkdir(parents=True)
        session = self._session("-Users-alice-dev-blog", session_id="s-1")
        self._index("-Users-alice-dev-blog", [
            {"sessionId": "other", "projectPath": "/Users/alice/dev/wrong"},
            {"sessionId": "s-1", "projectPath": "/Users/alice/dev/website/"},
        ])

        self.assertEqual(self.resolver.resolve_project_name(session), "website")

    def test_index_entry_without_project_path_falls_through(self) -> None:
        session = self._session(
            "-Users-alice-dev-blog",
            session_id="s-2",
            lines=[{"type": "summary"}, {"type": "user", "cwd": "/Users/alice/dev/api-server"}],
        )
        self._index("-Users-alice-dev-blog", [{"sessionId": "s-2", "projectPath": ""}])

        self.assertEqual(self.resolver.resolve_project_name(session), "api-server")

    def test_transcript_cwd_beats_folder_heuristic(self) -> None:
        (self.fs_root / "Users" / "alice" / "dev" / "blog").mkdir(parents=True)
        session = self._session("-Users-alice-dev-blog", lines=[{"type": "user", "cwd": "/srv/checkout"}])

        self.assertEqual(self.resolver.resolve_project_name(session), "checkout")

    def test_invalid_index_is_ignored(self) -> None:
        session = self._session("plain-folder")
        (self.projects / "plain-folder" / "sessions-index.json").write_text("{not json", encoding="utf-8")

        self.assertEqual(self.resolver.resolve_project_name(session), "plain-folder")
        self.assertEqual(len(self.resolver.cache), 0)

    def test_index_is_cached_until_cleared(self) -> None:
        session = self._session("folder", session_id="s-3")
        index_path = self._index("folder", [{"sessionId": "s-3", "projectPath": "/a/first"}])

        self.assertEqual(self.resolver.resolve_project_name(session), "first")
        index_path.write_text(json.dumps({"entries": [{"sessionId": "s-3", "projectPath": "/a/second"}]}), encoding="utf-8")
        self.assertEqual(self.resolver.resolve_project_name(session), "first")

        self.resolver.clear_cache()
        self.assertEqual(self.resolver.resolve_project_name(session), "second")

    def test_cache_is_shared_per_instance(self) -> None:
        cache = ProjectIndexCache()
        resolver = ProjectNameResolver(cache=cache, filesystem_root=self.fs_root)
        self.assertIs(resolver.cache, cache)
        session = self._session("folder", session_id="s-4")
        self._index("folder", [{"sessionId": "s-4", "projectPath": "/x/y"}])

        resolver.resolve_project_name(session)

        self.assertEqual(len(cache), 1)
        self.assertEqual(len(self.resolver.cache), 0)


if __name__ == "__main__":
    unittest.main()
