"""
Server entrypoint for the Mara HTTP API.

Architectural role:
- Configures root logging once from `LOG_LEVEL`.
- Builds the application through `mara.api.http_api.create_app`.
- Serves it with uvicorn on `HOST`/`PORT` (overridable on the command line).
"""

import argparse
import logging

import uvicorn

from mara.api.http_api import create_app
from mara.config import get_settings


def main(argv=None):
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Run the Mara chatbot API server")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--log-level", default=settings.log_level)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger = logging.getLogger(__name__)
    logger.info(
        "Mara - McMaster Remote Assistant API on %s:%s (environment=%s)",
        args.host,
        args.port,
        settings.environment,
    )

    app = create_app()
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
