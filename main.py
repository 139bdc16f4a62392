"""
main.py: Server launcher and entry point.

Run this file to start the allocation API:

    python main.py

Interactive API docs are served at http://127.0.0.1:8000/docs

This file does NOT contain application logic. See app.py for the FastAPI
application and service wiring, and scripts/run_allocation.py for running
the engine directly against two CSV files.
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("ALLOCATOR_HOST", "127.0.0.1")
PORT = int(os.getenv("ALLOCATOR_PORT", "8000"))


def main() -> None:
    """Start the allocation API server."""
    print("=" * 60)
    print("  Fair Internship Allocation Engine")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
