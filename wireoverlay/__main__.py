"""Server entry point: python -m wireoverlay"""

from __future__ import annotations

import uvicorn

from wireoverlay.config import WireOverlayConfig
from wireoverlay.observability.logging import setup_logging


def main() -> None:
    config = WireOverlayConfig.from_yaml()
    setup_logging(config.log_level)

    uvicorn.run(
        "wireoverlay.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
