"""
Run the perfwatch API.

    python -m perfwatch --host 0.0.0.0 --port 8000
"""

import argparse

import uvicorn

from perfwatch.config import get_settings
from perfwatch.logging_config import configure_logging


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="perfwatch", description="Performance monitoring API")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    uvicorn.run(
        "perfwatch.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
