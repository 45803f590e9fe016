# crudbasico/logger.py

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(log_level: str = "INFO") -> None:
    """Configure root logging once for the API process.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL. Unknown names fall back to INFO.
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("crudbasico").setLevel(level)
