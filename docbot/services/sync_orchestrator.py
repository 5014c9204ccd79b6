from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field

from docbot.connectors.base import SourceConnector, SourceDocument
from docbot.connectors.registry import ConnectorRegistry
from docbot.core import metrics
from docbot.core.logging import log_event, set_run_context
from docbot.index.base import IndexAdapter
from docbot.services.document_processor import DocumentProcessor
from docbot.services.sync_state import SyncState, SyncStatus

LOGGER = logging.getLogger(__name__)


@dataclass
class SourceSyncStats:
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    listing_error: str | None = None


@dataclass
class SyncReport:
    sources: dict[str, SourceSyncStats] = field(default_factory=dict)
    indexed_document_count: int = 0
    error: str | None = None

    @property
    def processed(self) -> int:
        return sum(stats.processed for stats in self.sources.values())

    @property
    def skipped(self) -> int:
        return sum(stats.skipped for stats in self.sources.values())

    @property
    def failed(self) -> int:
        return sum(stats.failed for stats in self.sources.values())


class SyncOrchestrator:
    def __init__(self, connectors: ConnectorRegistry, processor: DocumentProcessor, index: IndexAdapter, state: SyncState | None = None):
        self.connectors = connectors
        self.processor = processor
        self.index = index
        self.state = state or SyncState()

    def hydrate(self) -> None:
        indexed: set[str] = set()
        failed: set[str] = set()
        try:
            indexed = self.index.all_indexed_parent_ids()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("sync_hydrate_indexed_failed", extra={"event": "sync_hydrate_indexed_failed", "error": str(exc)})
        try:
            failed = self.index.failed_parent_ids()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("sync_hydrate_failed_markers_failed", extra={"event": "sync_hydrate_failed_markers_failed", "error": str(exc)})
        self.state.hydrate(indexed, failed)
        status = self.state.status()
        LOGGER.info(
            "sync_state_hydrated",
            extra={"event": "sync_state_hydrated", "indexed": status.indexed_count, "failed": status.failed_count},
        )

    def trigger_sync(self) -> SyncReport | None:
        if not self.state.try_begin():
            self._skip_in_progress()
            return None
        return self._run_pass()

    def _skip_in_progress(self) -> None:
        log_event("sync.skipped_in_progress")
        metrics.sync_runs_total.labels(result="skipped").inc()

    def _run_pass(self, *, full_resync: bool = False) -> SyncReport:
        """Run one pass. The caller must already hold the in-progress flag; it is released here."""
        run_id = uuid.uuid4().hex
        set_run_context(run_id)
        started = time.perf_counter()
        report = SyncReport()
        try:
            if full_resync:
                LOGGER.warning("sync_full_resync_started", extra={"event": "sync_full_resync_started"})
                self.state.clear_all()
                self.index.clear_all()
            log_event("sync.started", payload={"full_resync": full_resync})
            for connector in self.connectors.connectors():
                if not connector.is_available():
                    LOGGER.info("sync_source_unavailable", extra={"event": "sync_source_unavailable", "source": connector.source_label})
                    continue
                report.sources[connector.source_label] = self._sync_source(connector)
            self.index.commit()
            report.indexed_document_count = self.index.document_count()
            log_event(
                "sync.completed",
                payload={
                    "processed": report.processed,
                    "skipped": report.skipped,
                    "failed": report.failed,
                    "indexed_document_count": report.indexed_document_count,
                },
            )
            metrics.sync_runs_total.labels(result="completed").inc()
        except Exception as exc:  # noqa: BLE001
            report.error = str(exc)
            metrics.sync_runs_total.labels(result="error").inc()
            LOGGER.exception("sync_pass_error", extra={"event": "sync_pass_error", "error": str(exc)})
        finally:
            metrics.sync_duration_seconds.observe(time.perf_counter() - started)
            self.state.end()
            set_run_context(None)
        return report

    def _sync_source(self, connector: SourceConnector) -> SourceSyncStats:
        source = connector.source_label
        stats = SourceSyncStats()
        try:
            documents = connector.list_documents()
        except Exception as exc:  # noqa: BLE001
            stats.listing_error = str(exc)
            log_event("sync.source_listed", level=logging.ERROR, payload={"source": source, "error": str(exc)})
            return stats

        known = sum(1 for document in documents if self.state.is_known(document.id))
        log_event("sync.source_listed", payload={"source": source, "listed": len(documents), "remaining": len(documents) - known})

        newly_failed: list[str] = []
        for document in documents:
            if self.state.is_known(document.id):
                stats.skipped += 1
                continue
            if self._sync_document(connector, document):
                stats.processed += 1
            else:
                if self.state.mark_failed(document.id):
                    newly_failed.append(document.id)
                stats.failed += 1

        if newly_failed:
            try:
                self.index.mark_failed(newly_failed)
                log_event("sync.failed_markers_persisted", payload={"source": source, "count": len(newly_failed)})
            except Exception as exc:  # noqa: BLE001
                log_event(
                    "sync.failed_markers_persisted",
                    level=logging.WARNING,
                    payload={"source": source, "count": len(newly_failed), "error": str(exc)},
                )

        for result in ("processed", "skipped", "failed"):
            metrics.sync_documents_total.labels(source=source, result=result).inc(getattr(stats, result))
        LOGGER.info(
            "sync_source_completed",
            extra={"event": "sync_source_completed", "source": source, "processed": stats.processed, "skipped": stats.skipped, "failed": stats.failed},
        )
        return stats

    def _sync_document(self, connector: SourceConnector, document: SourceDocument) -> bool:
        try:
            content: bytes | None = None
            if document.inline_content is not None:
                if not document.inline_content.strip():
                    log_event("sync.document_failed", level=logging.WARNING, payload={"doc_id": document.id, "reason": "empty_content"})
                    return False
            else:
                content = connector.fetch(document.id, document.content_type)
                if not content:
                    log_event("sync.document_failed", level=logging.WARNING, payload={"doc_id": document.id, "reason": "empty_content"})
                    return False

            if not self.processor.process_document(document, content, title_label=connector.title_label):
                log_event("sync.document_failed", level=logging.WARNING, payload={"doc_id": document.id, "reason": "processing_failed"})
                return False
        except Exception as exc:  # noqa: BLE001
            log_event("sync.document_failed", level=logging.ERROR, payload={"doc_id": document.id, "reason": "exception", "error": str(exc)})
            return False

        self.state.mark_indexed(document.id)
        log_event("sync.document_processed", payload={"doc_id": document.id, "doc_name": document.name, "source": connector.source_label})
        return True

    def force_full_resync(self) -> SyncReport | None:
        if not self.state.try_begin():
            LOGGER.warning("sync_full_resync_rejected", extra={"event": "sync_full_resync_rejected"})
            self._skip_in_progress()
            return None
        return self._run_pass(full_resync=True)

    def reset_failed_documents(self) -> None:
        try:
            self.index.clear_failed_markers()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("sync_clear_failed_markers_failed", extra={"event": "sync_clear_failed_markers_failed", "error": str(exc)})
        self.state.clear_failed()
        LOGGER.info("sync_failed_documents_reset", extra={"event": "sync_failed_documents_reset"})

    def get_sync_status(self) -> SyncStatus:
        return self.state.status()
