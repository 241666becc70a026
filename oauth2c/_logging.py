import json
import logging
import os
from logging import Formatter

json_logs = bool(os.getenv("JSON_LOGS", False))

log_level = os.getenv("OAUTH2C_LOG", "WARNING")
numeric_level: int = getattr(logging, log_level.upper(), logging.WARNING)
handler = logging.StreamHandler()
handler.setLevel(numeric_level)


class JsonFormatter(Formatter):
    def __init__(self):
        super(JsonFormatter, self).__init__()

    def format(self, record):
        json_record = {
            "message": record.getMessage(),
            "level": record.levelname,
            "timestamp": self.formatTime(record, self.datefmt),
        }
        return json.dumps(json_record)


formatter = logging.Formatter(
    "\033[92m%(asctime)s - %(name)s:%(levelname)s\033[0m: %(filename)s:%(lineno)s - %(message)s",
    datefmt="%H:%M:%S",
)

if json_logs:
    handler.setFormatter(JsonFormatter())
else:
    handler.setFormatter(formatter)

verbose_logger = logging.getLogger("oauth2c")
verbose_logger.setLevel(numeric_level)
verbose_logger.addHandler(handler)


def _turn_on_json():
    handler.setFormatter(JsonFormatter())


def _turn_on_debug():
    verbose_logger.setLevel(level=logging.DEBUG)
    handler.setLevel(level=logging.DEBUG)
