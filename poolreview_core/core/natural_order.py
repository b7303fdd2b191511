from __future__ import annotations

import re
from typing import Callable, Iterable, TypeVar


T = TypeVar("T")

_CHUNK_RE = re.compile(r"(\d+)")


def natural_key(text: str) -> tuple[tuple[int, int | str, str], ...]:
    """Sort key comparing embedded digit runs numerically, e.g. R2 < R10 < R100."""
    out: list[tuple[int, int | str, str]] = []
    for chunk in _CHUNK_RE.split(text):
        if not chunk:
            continue
        if chunk.isdigit():
            out.append((0, int(chunk), chunk))
        else:
            out.append((1, chunk.casefold(), chunk))
    return tuple(out)


def natural_compare(a: str, b: str) -> int:
    ka = natural_key(a)
    kb = natural_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def natural_sorted(items: Iterable[T], key: Callable[[T], str] | None = None) -> list[T]:
    if key is None:
        return sorted(items, key=lambda item: natural_key(str(item)))
    return sorted(items, key=lambda item: natural_key(key(item)))
