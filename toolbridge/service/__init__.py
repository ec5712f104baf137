"""HTTP surface of the proxy (FastAPI application and backend client)."""
