"""
Pydantic datamodels used by the COMPAS Navigator runtime.

Split into:
- session_models: Session + Turn + Artifact + ProgressMetrics
- api_models: HTTP request/response schemas
"""
