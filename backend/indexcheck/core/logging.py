import logging

from indexcheck.core.config import settings

LOG_FORMAT = "%(asctime)s %(name)s | %(levelname)s | %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
