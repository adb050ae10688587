import logging
import sys
import os
from logging.handlers import RotatingFileHandler

# LOG_DIR overrides the default logs/ folder next to the backend modules
LOGS_DIR = os.getenv("LOG_DIR") or os.path.join(os.path.dirname(__file__), "logs")
os.makedirs(LOGS_DIR, exist_ok=True)

ROOT_LOGGER_NAME = "dickerchen"


class CustomFormatter(logging.Formatter):
    """Colored console output, one color per level"""

    grey = "\x1b[38;20m"
    blue = "\x1b[34;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    reset = "\x1b[0m"
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s (%(filename)s:%(lineno)d)"

    FORMATS = {
        logging.DEBUG: grey + format_str + reset,
        logging.INFO: blue + format_str + reset,
        logging.WARNING: yellow + format_str + reset,
        logging.ERROR: red + format_str + reset,
        logging.CRITICAL: bold_red + format_str + reset
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno)
        formatter = logging.Formatter(log_fmt, datefmt="%Y-%m-%d %H:%M:%S")
        return formatter.format(record)


def _level_from_env(default: int) -> int:
    value = logging.getLevelName(os.getenv("LOG_LEVEL", "").upper())
    return value if isinstance(value, int) else default


def setup_logger(name: str = ROOT_LOGGER_NAME, level: int = logging.INFO) -> logging.Logger:
    """Configure the application logger: colored console plus rotating app.log"""

    logger = logging.getLogger(name)
    logger.setLevel(_level_from_env(level))

    # Handlers are attached once per logger name
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(CustomFormatter())
    logger.addHandler(console_handler)

    # 5MB per file, last 5 kept
    log_file = os.path.join(LOGS_DIR, "app.log")
    file_handler = RotatingFileHandler(log_file, maxBytes=5*1024*1024, backupCount=5, encoding='utf-8')
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    logger.addHandler(file_handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Child logger (dickerchen.<component>) sharing the application handlers"""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")


# Global logger instance
logger = setup_logger()
