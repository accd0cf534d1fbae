import logging
import sys

# Libraries that are noisy below WARNING. uvicorn.access duplicates taskflow.request.
QUIET_LOGGERS = ("sqlalchemy.engine", "redis", "uvicorn.access")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure logging once for the API and the analytics worker.

    Lines look like ``time level logger key=value ...``. When a handler is
    already installed (uvicorn, pytest) only the level is aligned.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))
