import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler


class JsonFormatter(logging.Formatter):
    """Одна запись лога - одна строка JSON"""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class LoggerConfig:
    """Настройка корневого логгера: консоль, файл с ротацией, текст или JSON"""

    TEXT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

    def __init__(
        self,
        log_file: str = "vmlaunch.log",
        log_dir: str = "",
        log_level: str = "INFO",
        console_output: bool = True,
        use_json: bool = False,
        max_bytes: int = 5 * 1024 * 1024,
        backup_count: int = 3,
    ):
        self.log_file = log_file
        self.log_dir = log_dir
        self.log_level = log_level.upper()
        self.console_output = console_output
        self.use_json = use_json
        self.max_bytes = max_bytes
        self.backup_count = backup_count

    def _formatter(self) -> logging.Formatter:
        if self.use_json:
            return JsonFormatter()
        return logging.Formatter(self.TEXT_FORMAT)

    def setup_logger(self) -> logging.Logger:
        '''Пересобирает обработчики корневого логгера'''
        level = getattr(logging, self.log_level, logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        # убираем старые обработчики, чтобы не было двойного вывода
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        formatter = self._formatter()
        if self.console_output:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        if self.log_dir:
            os.makedirs(self.log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(self.log_dir, self.log_file),
                maxBytes=self.max_bytes,
                backupCount=self.backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        logging.getLogger("urllib3").setLevel(logging.WARNING)
        return root_logger

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)
