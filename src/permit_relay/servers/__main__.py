"""Run the relayer server: ``python -m permit_relay.servers``."""

import logging

import uvicorn

from ..config import RelayerSettings
from .apps import RelayerServer


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = RelayerSettings.from_env()
    app = RelayerServer.from_settings(settings)
    logging.getLogger(__name__).info(
        "Relayer for facilitator %s on chain %d listening on port %d",
        settings.facilitator_address, settings.chain_id, settings.port,
    )
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
