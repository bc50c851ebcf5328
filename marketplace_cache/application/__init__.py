"""Application layer: FastAPI entry point and HTTP API."""
