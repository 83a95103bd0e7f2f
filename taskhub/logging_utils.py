import logging
import sys

# Third-party loggers that are too chatty at INFO/DEBUG
_QUIET_LOGGERS = ("multipart", "python_multipart", "slowapi")


def setup_logging(level: str = "INFO") -> None:
    """Configure simple, consistent logging for the app.

    Format: time level logger message k=v ...
    """
    level = level.upper()
    root = logging.getLogger()
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("taskhub").setLevel(level)

    if root.handlers:
        # Respect existing (e.g., uvicorn) but align level
        root.setLevel(level)
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S"
    )
    handler.setFormatter(formatter)

    root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(True)
