#!/usr/bin/env python3
"""
Entry Point for the CS Tutor API

This script starts the FastAPI server using uvicorn.

Usage:
    python run.py

Environment Variables:
    - PORT: Server port (default: 8000)
    - HOST: Server host (default: 0.0.0.0)
    - DEBUG: Enable auto-reload (default: true)
"""

import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))


def main():
    """Run the tutor API server."""
    import uvicorn
    from cs_tutor.config import settings
    from cs_tutor.logging_config import setup_logging

    setup_logging()

    host = os.environ.get("HOST", settings.host)
    port = int(os.environ.get("PORT", settings.port))
    debug = os.environ.get("DEBUG", str(settings.debug)).lower() == "true"
    store = "configured" if settings.database_url else "in-memory"
    llm = settings.app_llm_provider if settings.llm_configured else "NOT CONFIGURED"

    print(f"""
    ╔══════════════════════════════════════════════════════════╗
    ║               CS Tutor API - Starting                    ║
    ╠══════════════════════════════════════════════════════════╣
    ║  Environment: {settings.env:<43} ║
    ║  Host: {host:<50} ║
    ║  Port: {port:<50} ║
    ║  Debug: {str(debug):<49} ║
    ║  Store: {store:<49} ║
    ║  LLM: {llm:<51} ║
    ╠══════════════════════════════════════════════════════════╣
    ║  API Docs: http://{host}:{port}/docs{' ' * 23}║
    ╚══════════════════════════════════════════════════════════╝
    """)

    uvicorn.run(
        "cs_tutor.main:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info" if debug else "warning",
    )


if __name__ == "__main__":
    main()
