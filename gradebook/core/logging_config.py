# gradebook/core/logging_config.py
import logging

from gradebook.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    """
    Configure the root logger once for the API process and the RQ worker.
    """
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # SQL echo is too noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
