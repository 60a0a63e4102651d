"""
main.py: Server launcher and entry point.

Run this file to start the matching API:

    python main.py

API docs are served at http://127.0.0.1:8000/docs

This file does NOT contain application logic. See app.py for the FastAPI
application and service wiring.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os

import uvicorn

from matching_engine.utils.logger import configure_logging


HOST = os.getenv("MATCHING_HOST", "127.0.0.1")
PORT = int(os.getenv("MATCHING_PORT", "8000"))


def main() -> None:
    """Start the matching API server."""
    log_level = configure_logging(force=True)
    print("=" * 60)
    print("  Contractor Matching Engine")
    print("=" * 60)
    print(f"  Server  : http://{HOST}:{PORT}")
    print(f"  API docs: http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=os.getenv("MATCHING_RELOAD", "").lower() in {"1", "true", "yes"},
        log_level=log_level.lower(),
    )


if __name__ == "__main__":
    main()
