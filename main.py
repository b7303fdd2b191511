from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from poolreview_core.core import ConfigError, PoolReviewError, load_config
from poolreview_core.data import PoolStore, PoolUpdateStatus, list_changes, update_pool
from poolreview_report import export_pool_update_errors, export_review, render_pool_update_errors

LOGGER = logging.getLogger("poolreview")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="poolreview")
    sub = parser.add_subparsers(dest="command", required=True)

    review = sub.add_parser("review", help="Write a markdown review of the pool changes against a baseline.")
    review.add_argument("pool_dir", type=Path)
    review.add_argument("-o", "--output", type=Path, required=True, help="Markdown output filename.")
    review.add_argument("-i", "--img-dir", type=Path, required=True, help="Directory for preview images.")
    review.add_argument("-p", "--img-prefix", default=None, help="Prefix for image links in the markdown.")
    review.add_argument("-u", "--pool-update", action="store_true", help="Update the pool index first.")
    review.add_argument("--baseline", default=None, help="Revision the working tree is compared to.")
    review.add_argument("--config", type=Path, default=None, help="TOML file with review settings.")
    review.add_argument("-v", "--verbose", action="store_true")

    update = sub.add_parser("update", help="Rebuild the pool index from the item files.")
    update.add_argument("pool_dir", type=Path)
    update.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "review":
            return _run_review(args)
        if args.command == "update":
            return _run_update(args)
    except (PoolReviewError, ConfigError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    raise RuntimeError(f"unsupported command: {args.command}")


def _run_review(args: argparse.Namespace) -> int:
    config = load_config(args.config).with_overrides(baseline=args.baseline, images_prefix=args.img_prefix)
    if args.pool_update:
        result = update_pool(args.pool_dir, on_status=_log_status)
        if not result.ok:
            export_pool_update_errors(result.errors, args.output)
            return 1

    changes = list_changes(args.pool_dir, config.baseline)
    with PoolStore(args.pool_dir) as store:
        bundle = export_review(store, changes, output=args.output, images_dir=args.img_dir, config=config)
    LOGGER.debug("review bundle: %s", bundle.as_dict())
    return 0


def _run_update(args: argparse.Namespace) -> int:
    result = update_pool(args.pool_dir, on_status=_log_status)
    if not result.ok:
        sys.stdout.write(render_pool_update_errors(result.errors))
        return 1
    print(f"pool update complete: items={result.items}")
    return 0


def _log_status(status: PoolUpdateStatus, filename: str, detail: str) -> None:
    if status == PoolUpdateStatus.FILE_ERROR:
        LOGGER.warning("%s: %s", filename, detail)
    else:
        LOGGER.debug("%s %s %s", status.value, filename, detail)


if __name__ == "__main__":
    raise SystemExit(main())
