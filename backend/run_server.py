"""
FastAPI server startup script
"""
import logging
import sys

import uvicorn

from academic_agent.core.config import get_settings


if __name__ == "__main__":
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    print("=" * 70)
    print(f"[START] Starting {settings.app_name} backend server...")
    print(f"[START] Platform: {sys.platform}")
    print(f"[START] Database: {settings.database_url}")
    print(f"[START] Max iterations per query: {settings.max_iterations}")
    print("=" * 70)

    uvicorn.run(
        "academic_agent.main:app",
        host="0.0.0.0",
        port=8000,
        reload=sys.platform != "win32",
        log_level=settings.log_level.lower(),
    )
