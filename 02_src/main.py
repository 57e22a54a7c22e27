"""Main entry point for the event fabric."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from eventfabric.api import create_fastapi_app
from eventfabric.logging_config import setup_logging
from sim import Sim


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    # Get configuration from environment
    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))
    api_url = f"http://{api_host}:{api_port}"

    # Create SIM instance
    sim = Sim(
        api_url=api_url,
        internal_bus=os.getenv("INTERNAL_EVENT_BUS_NAME", "InternalEventBus"),
    )

    # Set SIM instance for control router
    from eventfabric.api.routes import control
    control.set_sim_instance(sim)

    # Create FastAPI app (settings are read from the environment on startup;
    # a missing STRIPE_PARTNER_EVENT_BUS_ARN aborts startup)
    app = create_fastapi_app()

    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
