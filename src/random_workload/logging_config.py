import logging
import logging.config
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-6s %(name)8s:%(lineno)d %(message)s"

# Libraries that are chatty at INFO.
QUIET_LOGGERS = ("uvicorn.access", "httpx", "xrpl")


def logging_config(level: str | None = None, log_file: str | None = None) -> dict:
    """Build the dictConfig for the package.

    ``level`` defaults to ``LOG_LEVEL`` (INFO). ``log_file`` defaults to
    ``LOG_FILE`` (``/tmp/random_workload.log``); an empty value logs to stdout only.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if log_file is None:
        log_file = os.getenv("LOG_FILE", "/tmp/random_workload.log")

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": sys.stdout,
        },
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": log_file,
            "mode": "a",
        }
    names = list(handlers)

    loggers = {"random_workload": {"level": level, "handlers": names, "propagate": False}}
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING", "handlers": names, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"}},
        "handlers": handlers,
        "loggers": loggers,
        "root": {"level": "WARNING", "handlers": names},
    }


def setup_logging(level: str | None = None, log_file: str | None = None):
    logging.config.dictConfig(logging_config(level, log_file))
    os.environ.setdefault("PYTHONUNBUFFERED", "1")
