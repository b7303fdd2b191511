from __future__ import annotations

import contextlib
import io
from pathlib import Path
import shutil
import subprocess
import tempfile
import unittest

import pool_fixtures as fx

import main as cli


def _run(*argv: str) -> tuple[int, str, str]:
    out = io.StringIO()
    err = io.StringIO()
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        code = cli.main(list(argv))
    return code, out.getvalue(), err.getvalue()


def _git(repo: Path, *args: str) -> None:
    subprocess.run(
        ["git", "-C", str(repo), "-c", "user.name=Review", "-c", "user.email=review@example.com", *args],
        check=True,
        capture_output=True,
    )


class UpdateCommandTests(unittest.TestCase):
    def test_missing_directory(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            code, _, err = _run("update", str(Path(td) / "missing"))
        self.assertEqual(code, 1)
        self.assertIn("error: pool directory not found", err)

    def test_update_reports_item_count(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            fx.write_pool(Path(td))
            code, out, _ = _run("update", td)
        self.assertEqual(code, 0)
        self.assertIn("items=7", out)

    def test_update_errors_are_printed(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "units").mkdir()
            (Path(td) / "units" / "bad.json").write_text("[", encoding="utf-8")
            code, out, _ = _run("update", td)
        self.assertEqual(code, 1)
        self.assertTrue(out.startswith("# Pool update encountered errors\n - units/bad.json "))


class ReviewCommandTests(unittest.TestCase):
    def test_pool_update_errors_go_to_the_output(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            pool = Path(td) / "pool"
            (pool / "parts").mkdir(parents=True)
            (pool / "parts" / "bad.json").write_text("{", encoding="utf-8")
            output = Path(td) / "review.md"
            code, _, _ = _run("review", str(pool), "-o", str(output), "-i", str(Path(td) / "img"), "-u")
            text = output.read_text(encoding="utf-8")
        self.assertEqual(code, 1)
        self.assertIn("# Pool update encountered errors", text)
        self.assertIn(" - parts/bad.json", text)

    def test_broken_config_is_reported(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            config = Path(td) / "review.toml"
            config.write_text("unknown_key = 1\n", encoding="utf-8")
            code, _, err = _run(
                "review", td, "-o", str(Path(td) / "r.md"), "-i", str(Path(td) / "img"), "--config", str(config)
            )
        self.assertEqual(code, 1)
        self.assertIn("error:", err)

    @unittest.skipUnless(shutil.which("git"), "git is not installed")
    def test_not_a_repository(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            code, _, err = _run("review", td, "-o", str(Path(td) / "r.md"), "-i", str(Path(td) / "img"))
        self.assertEqual(code, 1)
        self.assertIn("error: error opening repo", err)

    @unittest.skipUnless(shutil.which("git"), "git is not installed")
    def test_review_of_staged_items(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            repo = Path(td) / "pool"
            repo.mkdir()
            _git(repo, "init", "-q")
            _git(repo, "symbolic-ref", "HEAD", "refs/heads/master")
            (repo / "README.md").write_text("pool\n", encoding="utf-8")
            _git(repo, "add", "README.md")
            _git(repo, "commit", "-q", "-m", "initial")

            docs = fx.base_documents()
            fx.write_pool(repo, docs)
            _git(repo, "add", *docs)

            output = Path(td) / "out" / "review.md"
            images = Path(td) / "out" / "img"
            code, _, err = _run("review", str(repo), "-o", str(output), "-i", str(images), "-p", "img/", "-u")
            text = output.read_text(encoding="utf-8")
            image_names = sorted(path.name for path in images.iterdir())

        self.assertEqual(code, 0, err)
        self.assertIn("|New | Part | RC0402-10K | parts/rc0402-10k.json", text)
        self.assertNotIn("# Non-items\n", text)
        self.assertEqual(image_names, sorted([f"pkg_{fx.PACKAGE}.png", f"sym_{fx.SYMBOL}.png"]))


if __name__ == "__main__":
    unittest.main()
