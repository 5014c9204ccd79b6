from __future__ import annotations

from dataclasses import dataclass

from docbot.connectors import ConnectorRegistry, register_default_connectors
from docbot.index.base import IndexAdapter
from docbot.services.answer_generator import AnswerGenerator
from docbot.services.document_processor import DocumentProcessor
from docbot.services.query_engine import QueryEngine
from docbot.services.sync_orchestrator import SyncOrchestrator, SyncReport
from docbot.services.sync_state import SyncStatus
from docbot.workers.sync_scheduler import SyncScheduler


@dataclass
class Application:
    index: IndexAdapter
    orchestrator: SyncOrchestrator
    query_engine: QueryEngine
    scheduler: SyncScheduler

    def trigger_sync(self) -> SyncReport | None:
        return self.orchestrator.trigger_sync()

    def force_full_resync(self) -> SyncReport | None:
        return self.orchestrator.force_full_resync()

    def reset_failed_documents(self) -> None:
        self.orchestrator.reset_failed_documents()

    def get_sync_status(self) -> SyncStatus:
        return self.orchestrator.get_sync_status()

    def answer_question(self, text: str) -> str:
        return self.query_engine.answer_question(text)


def build_application(
    index: IndexAdapter | None = None,
    connectors: ConnectorRegistry | None = None,
    generator: AnswerGenerator | None = None,
) -> Application:
    if index is None:
        from docbot.index.solr import SolrIndexAdapter

        index = SolrIndexAdapter()
    if connectors is None:
        connectors = register_default_connectors(ConnectorRegistry())
    processor = DocumentProcessor(index)
    orchestrator = SyncOrchestrator(connectors, processor, index)
    engine = QueryEngine(index, generator or AnswerGenerator())
    return Application(
        index=index,
        orchestrator=orchestrator,
        query_engine=engine,
        scheduler=SyncScheduler(orchestrator),
    )
