from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
import json


class ServiceStatus(str, Enum):
    success = "success"
    error = "error"
    cancelled = "cancelled"
    warning = "warning"


@dataclass
class ServiceResponse:
    """Унифицированный формат ответа для обмена между сервисами"""
    status: ServiceStatus = ServiceStatus.success   # success, error, cancelled, warning
    message: str = ""             # Строка статуса для оператора
    error: Optional[str] = None   # Сообщение об ошибке
    data: Any = field(default_factory=dict)  # Любые дополнительные данные

    def to_dict(self) -> dict:
        """Конвертируем в словарь"""
        return {
            "status": self.status.value,
            "message": self.message,
            "error": self.error,
            "data": self.data
        }

    def to_json(self) -> str:
        """Конвертируем в JSON"""
        return json.dumps(self.to_dict(), ensure_ascii=False)
