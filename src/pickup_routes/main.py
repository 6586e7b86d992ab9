"""Command-line entry point: python -m pickup_routes.main --api --port 8000"""
import argparse
import sys

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from .configurations.config import Config

load_dotenv()


def configure_logging(level: str = None):
    logger.remove()
    logger.add(sys.stderr, level=(level or Config.LOG_LEVEL).upper())


def main(argv=None):
    parser = argparse.ArgumentParser(description="School pickup route coordinator")
    parser.add_argument("--api", action="store_true", help="Run the HTTP API server")
    parser.add_argument("--host", default=Config.API_HOST, help="Bind address for the API server")
    parser.add_argument("--port", type=int, default=Config.PORT, help="Port for the API server")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    if not args.api:
        parser.print_help()
        return 1

    from .api.app import app

    logger.info(f"Serving API on http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
