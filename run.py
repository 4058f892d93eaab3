"""
Run script for the Examination System API
Starts the FastAPI application with uvicorn
"""

import uvicorn
import os
import sys

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from exam_api.core.config import settings


def main():
    """Run the FastAPI application."""
    print("=" * 60)
    print(f"  {settings.app_name} - Starting Server")
    print("=" * 60)
    print()
    print(f"  Environment:    {settings.environment}")
    print(f"  API Docs:       http://localhost:{settings.port}/docs")
    print(f"  Health Check:   http://localhost:{settings.port}/health")
    print()
    print("=" * 60)

    uvicorn.run(
        "exam_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
        access_log=True,
        timeout_graceful_shutdown=int(settings.shutdown_timeout_seconds),
    )


if __name__ == "__main__":
    main()
