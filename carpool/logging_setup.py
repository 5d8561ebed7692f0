import logging


def configure_logging(level: str | int = logging.INFO) -> None:
    """Configure process-wide console logging for the API and the worker."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
