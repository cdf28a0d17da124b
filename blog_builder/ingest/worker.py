from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .collector import check_source_root, collect_sources, dedupe_by_slug, pick_latest
from .config import BuildConfig
from .engine import MarkdownParsingEngine, ParsingEngine
from .feed import FeedGenerator
from .images import BlurPreviewGenerator
from .indexing import Indexer, NoopIndexer, WhooshIndexer
from .models import BuildPhase, BuildReport, ParsedDocument, SourceFile, SourceKind, utcnow
from .pagination import PaginationGenerator
from .paths import canonical_relative_path, is_absolute_url, public_asset_url
from .repository import SqlAlchemyDatasetRepository
from .storage import LocalSiteStorage, StoragePaths

logger = logging.getLogger(__name__)


class SiteBuildWorker:
    """
    Drives one build through precheck -> mirror -> collect -> preview -> parse
    -> DB ingestion -> pagination/feed -> indexing -> swap.

    Everything is written into a staging directory; the live output is only
    replaced once every phase has finished. Any exception discards the staging
    directory and propagates, leaving the previous output untouched.
    """

    def __init__(
        self,
        config: BuildConfig,
        storage: Optional[LocalSiteStorage] = None,
        engine: Optional[ParsingEngine] = None,
        previews: Optional[BlurPreviewGenerator] = None,
    ):
        self.config = config
        self.storage = storage or LocalSiteStorage(config.output_root)
        self.engine = engine or MarkdownParsingEngine(
            chars_per_minute=config.chars_per_minute,
            words_per_minute=config.words_per_minute,
        )
        self.previews = previews or BlurPreviewGenerator(size=config.blur_size, workers=config.image_workers)

    def run(self, build_time: Optional[_dt.datetime] = None) -> BuildReport:
        report = BuildReport(
            source_root=str(self.config.source_root),
            output_root=str(self.storage.output_root),
        )
        source_root = check_source_root(self.config.source_root)
        staging = self.storage.begin_staging()
        try:
            self._build(source_root, staging, report, build_time)
            report.phase = BuildPhase.SWAP
            self.storage.commit_staging(staging)
        except Exception:
            logger.exception("Build failed during %s; previous output left in place", report.phase.value)
            self.storage.discard_staging(staging)
            raise
        report.phase = BuildPhase.COMPLETED
        self._log_summary(report)
        return report

    def _build(
        self,
        source_root: Path,
        staging: StoragePaths,
        report: BuildReport,
        build_time: Optional[_dt.datetime],
    ) -> None:
        report.phase = BuildPhase.MIRROR
        report.assets_mirrored = self.storage.mirror_assets(source_root, staging)

        report.phase = BuildPhase.COLLECT
        sources = collect_sources(source_root)
        report.files_scanned = len(sources)
        winners, report.duplicates = dedupe_by_slug(sources)
        report.documents_found = len(winners)
        images, _ = pick_latest(
            [s for s in sources if s.kind == SourceKind.IMAGE],
            key=lambda s: canonical_relative_path(s.relative_path),
        )
        report.images_found = len(images)

        report.phase = BuildPhase.PREVIEW
        blur_map = self.previews.generate_all(images.values())
        report.blur_failures = sorted(url for url, payload in blur_map.items() if payload is None)

        report.phase = BuildPhase.PARSE
        documents = self._parse_all(winners, blur_map, report)

        report.phase = BuildPhase.DB_INGESTION
        repo = SqlAlchemyDatasetRepository(staging.database_url)
        try:
            repo.reset_schema()
            report.results = repo.ingest_documents(documents)
            for failed in report.failed:
                logger.warning("Failed to insert %s: %s", failed.slug, failed.error)

            report.phase = BuildPhase.PAGINATION
            report.pages_written = PaginationGenerator(repo, page_size=self.config.posts_per_page).generate(
                self.storage, staging
            )

            report.phase = BuildPhase.FEED
            feed = FeedGenerator(
                repo,
                site_url=self.config.site_url,
                title=self.config.blog_name,
                description=self.config.blog_description,
                language=self.config.language,
                limit=self.config.feed_limit,
            )
            entries = feed.entries()
            report.feed_items = len(entries)
            self.storage.write_text(staging.feed_path, feed.render(build_time=build_time, entries=entries))
            self.storage.write_json(
                staging.blur_map_path,
                {url: payload for url, payload in sorted(blur_map.items()) if payload is not None},
            )

            report.phase = BuildPhase.INDEXING
            indexed = self._indexer_for(staging).index_documents(repo.list_all_documents())
            logger.debug("Indexed %d documents", indexed)
        finally:
            # The database file must be released before the directory is moved.
            repo.close()

        report.finished_at = utcnow()
        self.storage.write_json(staging.report_path, report.to_json())

    def _parse_all(
        self,
        winners: Dict[str, SourceFile],
        blur_map: Dict[str, Optional[str]],
        report: BuildReport,
    ) -> List[ParsedDocument]:
        documents: List[ParsedDocument] = []
        for slug, source in winners.items():
            try:
                document = self.engine.parse(source)
            except OSError as exc:
                logger.warning("Cannot read %s: %s", source.relative_path, exc)
                report.warnings.append(f"{slug}: unreadable ({exc})")
                continue
            self._attach_preview(document, blur_map, report)
            for warning in document.warnings:
                report.warnings.append(f"{slug}: {warning}")
            if not document.has_dates:
                report.warnings.append(f"{slug}: no created or modified date")
            documents.append(document)
        return documents

    def _attach_preview(
        self,
        document: ParsedDocument,
        blur_map: Dict[str, Optional[str]],
        report: BuildReport,
    ) -> None:
        if not document.thumbnail or is_absolute_url(document.thumbnail):
            return
        url = public_asset_url(document.thumbnail)
        if url not in blur_map:
            logger.warning("%s: missing thumbnail file %s", document.slug, document.thumbnail)
            report.warnings.append(f"{document.slug}: missing thumbnail file {document.thumbnail}")
            return
        document.blur_data_url = blur_map[url]

    def _indexer_for(self, staging: StoragePaths) -> Indexer:
        if not self.config.build_search_index:
            return NoopIndexer()
        return WhooshIndexer(staging.search_index_dir)

    def _log_summary(self, report: BuildReport) -> None:
        logger.info(
            "Build finished: %d files scanned, %d documents inserted, %d failed, %d duplicates resolved, "
            "%d assets mirrored, %d listing pages, %d feed items",
            report.files_scanned,
            len(report.inserted),
            len(report.failed),
            len(report.duplicates),
            report.assets_mirrored,
            report.pages_written,
            report.feed_items,
        )
        if report.warnings:
            logger.warning("%d data-quality warnings:\n  %s", len(report.warnings), "\n  ".join(report.warnings))
        if report.blur_failures:
            logger.warning("Blur previews unavailable for: %s", ", ".join(report.blur_failures))
