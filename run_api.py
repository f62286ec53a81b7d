#!/usr/bin/env python3
"""
Run script for the Claim Decision Engine API.

Usage:
    python run_api.py

Settings are read from the environment or a .env file (see src/utils/config.py):
HOST, PORT, DEBUG, LOG_LEVEL, AUDIT_DB_PATH, ENGINE_CONFIG_FILE and the
RISK_*_THRESHOLD overrides.
"""

import logging

# Quiet noisy third-party loggers before they are imported
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    """Run the API server."""
    import uvicorn
    from src.utils.config import settings

    print("=" * 60)
    print("Claim Decision Engine")
    print("=" * 60)
    print(f"Server: http://{settings.host}:{settings.port}")
    print(f"Audit DB: {settings.audit_db_path or 'data/audit.db'}")
    print(f"Engine config: {settings.engine_config_file or 'built-in rules'}")
    print("=" * 60)
    print()
    print("Endpoints:")
    print(f"  - Health: http://{settings.host}:{settings.port}/health")
    print(f"  - Coverage: POST http://{settings.host}:{settings.port}/coverage/evaluate")
    print(f"  - Risk: POST http://{settings.host}:{settings.port}/risk/score")
    print(f"  - Escalations: POST http://{settings.host}:{settings.port}/escalations/decide")
    print(f"  - Full cycle: POST http://{settings.host}:{settings.port}/claims/decide")
    print(f"  - Jurisdictions: GET http://{settings.host}:{settings.port}/jurisdictions/CA")
    print()

    uvicorn.run(
        "src.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
