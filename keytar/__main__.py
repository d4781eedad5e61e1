import logging

import uvicorn

from keytar.app import create_app
from keytar.config import Settings


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger = logging.getLogger("keytar")

    app = create_app(settings)

    base = f"http://localhost:{settings.port}"
    logger.info("Keytar SSO mock service listening on port %d", settings.port)
    logger.info("Auth endpoint: %s/auth", base)
    logger.info("Token endpoint: %s/get-token", base)
    logger.info("User info endpoint: %s/userinfo", base)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
