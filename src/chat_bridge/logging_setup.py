from __future__ import annotations
import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

_STDERR_FORMAT = "<dim>{time:HH:mm:ss}</dim> <level>{level: <7}</level> {message}"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {name}:{line} | {message}"


def configure_logging(level: str = "WARNING", log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Replace loguru's default sink. stderr gets 'level' and above so the streamed
    conversation on stdout stays readable; the optional file sink records DEBUG.
    """
    level = level.upper()
    logger.remove()
    logger.add(sys.stderr, level=level, format=_STDERR_FORMAT, colorize=None)
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(path, level="DEBUG", format=_FILE_FORMAT, rotation="1 MB", retention=5, encoding="utf-8")
    logger.debug(f"logging_configured | level={level} | file={log_file}")
