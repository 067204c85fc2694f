#!/usr/bin/env python3
"""Run the AuthorityPilot API."""
import uvicorn

from authority_pilot.config import settings
from authority_pilot.logging_config import setup_logging

if __name__ == "__main__":
    setup_logging(console=True)

    print("\n" + "=" * 50)
    print("  AuthorityPilot API")
    print("  http://localhost:8000")
    print("=" * 50 + "\n")

    uvicorn.run(
        "authority_pilot.web.app:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
