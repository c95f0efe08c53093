import logging.config
import sys
from typing import Any, Dict

PLAIN_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"
JSON_FORMAT = (
    '{"time": "%(asctime)s", "level": "%(levelname)s", '
    '"logger": "%(name)s", "message": "%(message)s"}'
)


def build_logging_config(
    log_level: str = "INFO", json_logs: bool = False, sql_echo: bool = False
) -> Dict[str, Any]:
    """
    dictConfig 설정 생성

    - consultapi.*: 서비스 로그 (상태 전이, 원장 기록, 한도 초과)
    - sqlalchemy.engine: sql_echo일 때만 INFO, 평소에는 WARNING
    """
    level = log_level.upper()
    handler_names = ["stdout", "stderr"]

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {"format": PLAIN_FORMAT},
            "json": {"format": JSON_FORMAT},
            "trace": {"format": PLAIN_FORMAT + "\n  at %(pathname)s:%(lineno)d"},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_logs else "plain",
                "stream": sys.stdout,
            },
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_logs else "trace",
                "stream": sys.stderr,
                "level": "WARNING",
            },
        },
        "loggers": {
            "": {"handlers": handler_names, "level": level},
            "consultapi": {
                "handlers": handler_names,
                "level": level,
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["stdout"],
                "level": "WARNING",
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "INFO" if sql_echo else "WARNING",
            },
        },
    }


def setup_logging(
    log_level: str = "INFO", json_logs: bool = False, sql_echo: bool = False
) -> None:
    logging.config.dictConfig(build_logging_config(log_level, json_logs, sql_echo))
