"""HTTP API: FastAPI app + JSON routes."""
