#!/usr/bin/env python3
"""
Simple run script for the TinyFlow API.

Usage:
    python run.py

Or with custom settings:
    HOST=127.0.0.1 PORT=8080 python run.py
"""

import uvicorn

from tinyflow.config import settings


def main():
    """Run the FastAPI application."""
    print(f"""
TinyFlow {settings.APP_VERSION}
  Server:    http://{settings.HOST}:{settings.PORT}
  API Docs:  http://{settings.HOST}:{settings.PORT}/docs
    """)

    uvicorn.run(
        "tinyflow.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
