import datetime
import logging
import os
import sys
from pathlib import Path
from typing import Union

import termcolor

__appname__ = "pagevoice"


def resolve_path(path: Union[Path, str]) -> Path:
    return Path(path).expanduser().resolve()


# Logs live next to the user's home so the reader can be debugged after a session
logs_dir_path = resolve_path(Path.home() / f"{__appname__}_logs")
if not logs_dir_path.exists():
    logs_dir_path.mkdir(parents=True)

current_date = datetime.datetime.now().strftime("%Y-%m-%d")
log_file_path = logs_dir_path / f"{__appname__}_{current_date}.log"

if os.name == "nt":  # Windows
    import colorama
    colorama.init()


COLORS = {
    "WARNING": "yellow",
    "INFO": "white",
    "DEBUG": "blue",
    "CRITICAL": "red",
    "ERROR": "red",
}


class ColoredFormatter(logging.Formatter):
    def __init__(self, fmt, use_color=True):
        logging.Formatter.__init__(self, fmt)
        self.use_color = use_color

    def format(self, record):
        levelname = record.levelname
        if self.use_color and levelname in COLORS:

            def colored(text):
                return termcolor.colored(
                    text,
                    color=COLORS[levelname],
                    attrs=["bold"],
                )

            record.levelname2 = colored("{:<7}".format(record.levelname))
            record.message2 = colored(record.getMessage())

            asctime2 = datetime.datetime.fromtimestamp(record.created)
            record.asctime2 = termcolor.colored(str(asctime2), color="green")

            record.module2 = termcolor.colored(record.module, color="cyan")
            record.funcName2 = termcolor.colored(record.funcName, color="cyan")
            record.lineno2 = termcolor.colored(str(record.lineno), color="cyan")
        else:
            record.levelname2 = "{:<7}".format(record.levelname)
            record.message2 = record.getMessage()
            record.module2 = record.module
            record.funcName2 = record.funcName
            record.lineno2 = record.lineno
        return logging.Formatter.format(self, record)


logger = logging.getLogger(__appname__)
logger.setLevel(logging.INFO)

stream_handler = logging.StreamHandler(sys.stderr)
stream_handler.setFormatter(
    ColoredFormatter(
        "%(asctime)s [%(levelname2)s] %(module2)s:%(funcName2)s:%(lineno2)s"
        "- %(message2)s"
    )
)
logger.addHandler(stream_handler)

file_handler = logging.FileHandler(log_file_path)
file_handler.setFormatter(
    logging.Formatter(
        "%(asctime)s [%(levelname)s] %(module)s:%(funcName)s:%(lineno)d - %(message)s"
    )
)
logger.addHandler(file_handler)


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Set the level of the package logger and its stderr handler."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    stream_handler.setLevel(level)
