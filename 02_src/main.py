"""Main entry point for the webhook gateway."""

from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from gateway import Application, GatewayConfig
from gateway.api import create_fastapi_app
from gateway.logging_config import setup_logging


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    # Configuration is read once; components receive it explicitly
    config = GatewayConfig.from_env()
    setup_logging(config)

    app = create_fastapi_app(Application(config))

    uvicorn.run(
        app,
        host=config.api_host,
        port=config.api_port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
