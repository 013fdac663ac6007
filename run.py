#!/usr/bin/env python3
"""
Run the Undervalued Listing Engine web server.
"""

import uvicorn

from utils.config import Config
from utils.logging_config import configure_logging


def main():
    """Start the web server."""
    config = Config.load()
    configure_logging("DEBUG" if config.debug else "INFO")

    print(f"Starting Undervalued Listing Engine on http://{config.host}:{config.port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "web.app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
    )


if __name__ == "__main__":
    main()
