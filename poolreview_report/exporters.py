from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Iterable

from poolreview_core.core import ChangeEntry, ReviewConfig
from poolreview_core.data import PoolStore, PoolUpdateError

from .markdown import render_markdown
from .review import ReviewModel, build_review

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewExportBundle:
    markdown: Path
    images_dir: Path
    images: tuple[Path, ...]
    model: ReviewModel

    def as_dict(self) -> dict[str, Any]:
        return {
            "markdown": str(self.markdown),
            "images_dir": str(self.images_dir),
            "images": [str(path) for path in self.images],
        }


def export_review(
    store: PoolStore,
    changes: Iterable[ChangeEntry],
    *,
    output: str | Path,
    images_dir: str | Path,
    config: ReviewConfig | None = None,
) -> ReviewExportBundle:
    cfg = config or ReviewConfig()
    out_path = Path(output)
    img_root = Path(images_dir)
    img_root.mkdir(parents=True, exist_ok=True)

    model = build_review(store, changes, cfg, img_root)
    text = render_markdown(model, images_prefix=cfg.images_prefix)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")
    LOGGER.info("wrote %s with %d images", out_path, len(model.images))

    return ReviewExportBundle(
        markdown=out_path,
        images_dir=img_root,
        images=tuple(image.path for image in model.images),
        model=model,
    )


def render_pool_update_errors(errors: Iterable[PoolUpdateError]) -> str:
    lines = ["# Pool update encountered errors"]
    for error in errors:
        lines.append(f" - {error.filename} {error.detail}")
    return "\n".join(lines) + "\n"


def export_pool_update_errors(errors: Iterable[PoolUpdateError], output: str | Path) -> Path:
    out_path = Path(output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(render_pool_update_errors(errors), encoding="utf-8")
    return out_path
