from __future__ import annotations

from pathlib import Path
import subprocess

from poolreview_core.core.changes import ChangeEntry
from poolreview_core.core.errors import RepositoryError


# `git diff --name-status` letters mapped onto libgit2 git_delta_t codes
STATUS_CODES: dict[str, int] = {
    "A": 1,
    "D": 2,
    "M": 3,
    "R": 4,
    "C": 5,
    "I": 6,
    "?": 7,
    "T": 8,
    "X": 10,
}


def list_changes(repo: str | Path, baseline: str = "master") -> list[ChangeEntry]:
    """Changes of the working tree (index included) against the `baseline` tree."""
    repo_path = Path(repo)
    proc = _git(repo_path, "rev-parse", "--is-inside-work-tree")
    if proc.returncode != 0 or proc.stdout.strip() != b"true":
        raise RepositoryError(f"error opening repo: {repo_path}")
    proc = _git(repo_path, "rev-parse", "--verify", "--quiet", f"{baseline}^{{tree}}")
    if proc.returncode != 0:
        raise RepositoryError(f"error finding {baseline} branch")
    proc = _git(repo_path, "diff", "--name-status", "--no-renames", "--relative", "-z", baseline, "--")
    if proc.returncode != 0:
        detail = proc.stderr.decode("utf-8", errors="replace").strip()
        raise RepositoryError(f"git diff against {baseline} failed: {detail}")
    return parse_name_status(proc.stdout)


def parse_name_status(payload: bytes) -> list[ChangeEntry]:
    fields = payload.decode("utf-8", errors="surrogateescape").split("\0")
    if fields and fields[-1] == "":
        fields.pop()
    if len(fields) % 2 != 0:
        raise RepositoryError("git diff output format unexpected")
    entries: list[ChangeEntry] = []
    for i in range(0, len(fields), 2):
        status = fields[i]
        path = fields[i + 1]
        code = STATUS_CODES.get(status[:1], 0)
        entries.append(ChangeEntry.from_code(path, code))
    return entries


def _git(repo: Path, *args: str) -> subprocess.CompletedProcess[bytes]:
    try:
        return subprocess.run(
            ["git", "-C", str(repo), *args],
            check=False,
            capture_output=True,
        )
    except OSError as exc:
        raise RepositoryError(f"cannot run git: {exc}") from exc
