import logging
import os

import uvicorn

from league.settings import configure_logging, load_settings

logger = logging.getLogger(__name__)
APP_MODULE = "league.main:app"


def _ssl_kwargs() -> dict[str, str]:
    cert = os.getenv("SSL_CERT_FILE")
    key = os.getenv("SSL_KEY_FILE")
    if not (cert or key):
        return {}
    if not (cert and key):
        logger.warning("SSL_CERT_FILE and SSL_KEY_FILE must both be set for HTTPS, serving plain HTTP.")
        return {}

    options: dict[str, str] = {"ssl_certfile": cert, "ssl_keyfile": key}
    for env_key, option in (("SSL_CA_FILE", "ssl_ca_certs"), ("SSL_KEY_PASSWORD", "ssl_keyfile_password")):
        value = os.getenv(env_key)
        if value:
            options[option] = value
    logger.info("Serving HTTPS with certificate %s", cert)
    return options


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    store_label = "in-memory demo store" if settings.database_url.startswith("memory:") else "postgres"
    logger.info("Starting league API on %s:%d with %s", settings.app_host, settings.app_port, store_label)
    uvicorn.run(
        APP_MODULE,
        host=settings.app_host,
        port=settings.app_port,
        log_level=os.getenv("UVICORN_LOG_LEVEL", settings.log_level),
        **_ssl_kwargs(),
    )


if __name__ == "__main__":
    main()
