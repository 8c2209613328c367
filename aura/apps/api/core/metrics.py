from __future__ import annotations

from prometheus_client import Counter, Histogram

entries_processed = Counter("aura_entries_processed_total", "Journal entries processed", ["mode"])
enrichment_failures = Counter(
    "aura_enrichment_failures_total", "Optional enrichments that degraded to absent", ["feature"]
)
inference_retries = Counter("aura_inference_retries_total", "Retried inference calls", ["task"])
reconciliations = Counter("aura_reconciliations_total", "Pending entries reconciled", ["outcome"])
pipeline_latency = Histogram("aura_pipeline_seconds", "Online entry processing latency in seconds")
