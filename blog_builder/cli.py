"""
Build the blog dataset from a markdown tree.

Usage:
    blog-build --source ./md --output ./data
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
from pathlib import Path
from typing import List, Optional

from blog_builder.ingest import BuildConfig, SiteBuildWorker


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blog-build", description="Build the static blog dataset")
    parser.add_argument("--source", type=Path, default=None, help="Markdown source root (BLOG_SOURCE_DIR)")
    parser.add_argument("--output", type=Path, default=None, help="Output directory (BLOG_OUTPUT_DIR)")
    parser.add_argument("--site-url", default=None, help="Public site URL used in the feed (SITE_URL)")
    parser.add_argument("--posts-per-page", type=int, default=None, help="Listing page size (POSTS_PER_PAGE)")
    parser.add_argument("--image-workers", type=int, default=None, help="Threads for blur previews (IMAGE_WORKERS)")
    parser.add_argument("--no-search-index", action="store_true", help="Skip the Whoosh search index")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    return parser


def config_from_args(args: argparse.Namespace) -> BuildConfig:
    config = BuildConfig.from_env()
    overrides = {}
    if args.source is not None:
        overrides["source_dir"] = str(args.source)
    if args.output is not None:
        overrides["output_dir"] = str(args.output)
    if args.site_url is not None:
        overrides["site_url"] = args.site_url
    if args.posts_per_page is not None:
        overrides["posts_per_page"] = args.posts_per_page
    if args.image_workers is not None:
        overrides["image_workers"] = args.image_workers
    if args.no_search_index:
        overrides["build_search_index"] = False
    return dataclasses.replace(config, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)
    report = SiteBuildWorker(config_from_args(args)).run()

    print(f"Inserted {len(report.inserted)} documents into {report.output_root}")
    print(f"Listing pages: {report.pages_written}, feed items: {report.feed_items}")
    if report.duplicates:
        print(f"Duplicate slugs resolved: {len(report.duplicates)}")
    if report.warnings:
        print(f"Warnings: {len(report.warnings)}")
    if report.failed:
        for result in report.failed:
            print(f"FAILED {result.slug}: {result.error}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
