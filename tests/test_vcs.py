from __future__ import annotations

from pathlib import Path
import shutil
import subprocess
import tempfile
import unittest

from poolreview_core.core.changes import ChangeKind
from poolreview_core.core.errors import RepositoryError
from poolreview_core.data.vcs import list_changes, parse_name_status


def _git(repo: Path, *args: str) -> None:
    subprocess.run(
        ["git", "-C", str(repo), "-c", "user.name=Review", "-c", "user.email=review@example.com", *args],
        check=True,
        capture_output=True,
    )


class ParseNameStatusTests(unittest.TestCase):
    def test_status_letters_map_to_delta_codes(self) -> None:
        payload = b"A\0parts/new.json\0M\0units/u.json\0D\0old.json\0T\0link.json\0"
        entries = parse_name_status(payload)
        self.assertEqual([e.path for e in entries], ["parts/new.json", "units/u.json", "old.json", "link.json"])
        self.assertEqual([e.kind for e in entries][:2], [ChangeKind.ADDED, ChangeKind.MODIFIED])
        self.assertEqual([e.code for e in entries], [1, 3, 2, 8])
        self.assertEqual(entries[2].label, "Unknown (2)")

    def test_empty_output(self) -> None:
        self.assertEqual(parse_name_status(b""), [])

    def test_malformed_output_raises(self) -> None:
        with self.assertRaises(RepositoryError):
            parse_name_status(b"M\0")


@unittest.skipUnless(shutil.which("git"), "git is not installed")
class ListChangesTests(unittest.TestCase):
    def test_not_a_repository(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(RepositoryError) as ctx:
                list_changes(td)
            self.assertIn("error opening repo", str(ctx.exception))

    def test_changes_against_baseline(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            repo = Path(td)
            _git(repo, "init", "-q")
            _git(repo, "symbolic-ref", "HEAD", "refs/heads/master")
            (repo / "units").mkdir()
            (repo / "units" / "u.json").write_text("{}", encoding="utf-8")
            _git(repo, "add", ".")
            _git(repo, "commit", "-q", "-m", "initial")

            (repo / "units" / "u.json").write_text('{"name": "x"}', encoding="utf-8")
            (repo / "parts").mkdir()
            (repo / "parts" / "p.json").write_text("{}", encoding="utf-8")
            _git(repo, "add", "parts/p.json")

            entries = {entry.path: entry.kind for entry in list_changes(repo)}
        self.assertEqual(entries, {"parts/p.json": ChangeKind.ADDED, "units/u.json": ChangeKind.MODIFIED})

    def test_missing_baseline(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            repo = Path(td)
            _git(repo, "init", "-q")
            with self.assertRaises(RepositoryError) as ctx:
                list_changes(repo, baseline="does-not-exist")
            self.assertIn("error finding does-not-exist branch", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
