"""
Entry point for the edge-trainer service.

Run with:
    uvicorn edge.api.main:app --reload --port 8100
    python main.py
"""
import uvicorn

from config import get_settings

settings = get_settings()

if __name__ == "__main__":
    uvicorn.run(
        "edge.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
