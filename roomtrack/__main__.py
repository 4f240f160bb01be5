# =======================================================================================
# roomtrack/__main__.py - Standalone Server
# =======================================================================================
"""
Usage:
    python -m roomtrack

Or with uvicorn:
    uvicorn roomtrack.main:app --host 0.0.0.0 --port 8000
"""
import uvicorn
from .config import config


def main():
    uvicorn.run(
        "roomtrack.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=False,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
