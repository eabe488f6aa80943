"""
Runtime package for the COMPAS Navigator server.

This package contains:
- API layer (FastAPI server + routes)
- Agents (per-turn conversation pipeline)
- Stores (sessions, exports, event logs)
- Models (Pydantic models for requests and sessions)
"""
