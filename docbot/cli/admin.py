import argparse
from collections.abc import Sequence


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="DocBot sync and question-answering administration")
    parser.add_argument("--log-level", type=str, default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("sync", help="Run one sync pass over all available sources")
    subparsers.add_parser("full-resync", help="Clear the index and all sync state, then run a pass")
    subparsers.add_parser("reset-failed", help="Forget permanently failed documents so they are retried")
    subparsers.add_parser("status", help="Show sync state and index health")
    ask = subparsers.add_parser("ask", help="Answer a question from indexed documents")
    ask.add_argument("question", nargs="+")
    search = subparsers.add_parser("search", help="Show retrieved chunks for a query without generating an answer")
    search.add_argument("query", nargs="+")
    serve = subparsers.add_parser("serve", help="Run the periodic sync scheduler until interrupted")
    serve.add_argument("--metrics-port", type=int, default=None, help="Expose Prometheus metrics on this port")
    return parser.parse_args(argv)


def build_application():
    from docbot.main import build_application as _build

    return _build()


def _print_report(report) -> None:
    if report is None:
        print("sync skipped; a pass is already in progress")
        return
    for source, stats in sorted(report.sources.items()):
        suffix = f" listing_error={stats.listing_error}" if stats.listing_error else ""
        print(f"{source}: processed={stats.processed} skipped={stats.skipped} failed={stats.failed}{suffix}")
    print(
        f"total: processed={report.processed} skipped={report.skipped} failed={report.failed} "
        f"indexed_documents={report.indexed_document_count}"
    )
    if report.error:
        print(f"error: {report.error}")


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    from docbot.core.logging import configure_logging

    configure_logging(args.log_level)
    app = build_application()

    if args.command == "sync":
        app.orchestrator.hydrate()
        _print_report(app.trigger_sync())
    elif args.command == "full-resync":
        _print_report(app.force_full_resync())
    elif args.command == "reset-failed":
        app.reset_failed_documents()
        print("failed documents reset")
    elif args.command == "status":
        app.orchestrator.hydrate()
        status = app.get_sync_status()
        print(
            f"in_progress={status.in_progress} indexed={status.indexed_count} failed={status.failed_count} "
            f"index_healthy={app.index.health_check()} documents={app.index.document_count()}"
        )
    elif args.command == "ask":
        print(app.answer_question(" ".join(args.question)))
    elif args.command == "search":
        result = app.query_engine.search(" ".join(args.query))
        print(f"found={len(result.chunks)} total={result.total_found} elapsed_ms={result.elapsed_ms}")
        for rank, item in enumerate(result.chunks, start=1):
            print(f"{rank}. {item.chunk.parent_name} [{item.chunk.chunk_id}] score={item.score:.3f} url={item.chunk.view_url or '-'}")
    elif args.command == "serve":
        from docbot.core.config import settings

        port = settings.METRICS_PORT if args.metrics_port is None else args.metrics_port
        if port > 0:
            from prometheus_client import start_http_server

            start_http_server(port)
        app.scheduler.run_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
