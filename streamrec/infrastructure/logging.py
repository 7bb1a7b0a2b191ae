import logging
from pathlib import Path
from rich.logging import RichHandler

LOG_FILE_NAME = "streamrec.log"


def setup_logging(log_dir: Path, debug: bool = False) -> logging.Logger:
    """Configure file logging under log_dir plus a rich console handler.

    Returns the package logger. Safe to call more than once; earlier handlers
    installed by this function are replaced.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if debug else logging.INFO

    file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    ))
    console_handler = RichHandler(show_path=debug, rich_tracebacks=True)
    console_handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("streamrec")
    for handler in list(logger.handlers):
        if getattr(handler, "_streamrec", False):
            logger.removeHandler(handler)
            handler.close()
    for handler in (file_handler, console_handler):
        handler._streamrec = True
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
