"""FastAPI route modules."""
