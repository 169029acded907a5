"""HTTP service for the dayjobs marketplace (FastAPI)."""
