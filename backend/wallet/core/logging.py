import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, (level or "INFO").upper(), logging.INFO), format=LOG_FORMAT)
    # httpx logs every request at INFO; the monitor polls every few seconds.
    logging.getLogger("httpx").setLevel(logging.WARNING)
