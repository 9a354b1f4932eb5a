"""FastAPI application for the edge trainer."""
