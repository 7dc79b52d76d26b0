"""
Pulse Pipeline Backend

Wires the ingestion and analysis layers into runs and exposes them.

LAYER STRUCTURE:
================

1. INGESTION (ingestion/)
   - Responsibility: fetch sources, parse payloads, store documents
   - Outputs: Document, FetchBatch, StoreOutcome
   - MUST NOT: call the inference service

2. ANALYSIS ADAPTER (adapter/)
   - Responsibility: rate-limited remote analysis with heuristic fallback
   - Outputs: AnalysisResult tagged with its provenance
   - MUST NOT: touch storage

3. ORCHESTRATION (backend/engine.py)
   - Responsibility: fetch → dedupe → persist → analyze, one run at a time
   - Outputs: PipelineRunResult with per-item errors and skipped sources

4. FRONT DOORS (backend/api/, backend/cli.py)
   - Responsibility: trigger runs, read results, reset degradation

5. OBSERVABILITY (backend/observability/)
   - Responsibility: structured logging configuration

CONSTRAINTS ENFORCED:
=====================
- One item's failure never aborts a run
- Only a run that fetched nothing is reported as failed
- Degraded analysis stays degraded until explicitly reset
"""
