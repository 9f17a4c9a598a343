import sys
from loguru import logger
from pathlib import Path

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {name}:{line} | {message}"


def setup_logger(log_dir: str = "logs", level: str = "INFO"):
    """stdout at ``level``; runtime.log keeps DEBUG (receipt polling, version probes), errors.log keeps failures."""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.remove()
    logger.add(sys.stdout, level=level, format=LOG_FORMAT)
    # enqueue: submissions for different owners may log from several threads
    logger.add(log_path / "runtime.log", rotation="10 MB", retention=5, level="DEBUG", format=LOG_FORMAT, enqueue=True)
    logger.add(log_path / "errors.log", rotation="10 MB", level="ERROR", format=LOG_FORMAT, backtrace=True, enqueue=True)
    return logger
