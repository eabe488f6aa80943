"""
Storage abstractions for the COMPAS Navigator runtime.

Includes:
- SessionStore: in-memory sessions with per-session locks and eviction
- ExportStore: rendered report exports (Markdown / JSON)
- LogStore: append-only JSONL event log
"""
