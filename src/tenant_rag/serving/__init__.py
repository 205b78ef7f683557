"""
Serving — FastAPI application for tenant-scoped ingestion and retrieval.

Authentication is handled upstream; the tenant id arrives in the path.
"""
