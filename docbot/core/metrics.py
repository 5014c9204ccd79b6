from __future__ import annotations

from prometheus_client import Counter, Histogram

sync_documents_total = Counter(
    "docbot_sync_documents_total", "Documents handled by sync passes", ["source", "result"]
)
sync_runs_total = Counter("docbot_sync_runs_total", "Sync pass outcomes", ["result"])
sync_duration_seconds = Histogram("docbot_sync_duration_seconds", "Sync pass duration (seconds)")
query_total = Counter("docbot_query_total", "Questions answered by kind", ["kind"])
query_duration_seconds = Histogram("docbot_query_duration_seconds", "Question handling duration (seconds)")
