import json
import logging
from typing import Optional

from vmlaunch.core.http import HttpClient, Transport
from vmlaunch.domain.vm import ConflictAction


class InvalidServerAddress(ValueError):
    """Адрес сервера пустой - запрос отправлять некуда"""


def normalize_base_url(base_url: Optional[str]) -> str:
    base = (base_url or "").strip()
    if not base:
        raise InvalidServerAddress("Server address is empty")
    return base.rstrip("/")


def _payload(**fields) -> str:
    body = {key: value for key, value in fields.items() if value is not None}
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


class LaunchAPIClient:
    """Обертка над REST API сервиса запуска ВМ.

    Возвращает сырой текст ответа. Разбор - в domain.parsing, решения - в use_cases.
    """

    def __init__(self, base_url: str, transport: Optional[Transport] = None,
                 logger: Optional[logging.Logger] = None):
        self.base_url = normalize_base_url(base_url)
        parent = logger or logging.getLogger(__name__)
        self.logger = logging.getLogger(f"{parent.name}.{self.__class__.__name__}")
        self.transport = transport or HttpClient(logger=self.logger)

    def _send(self, method: str, path: str, body: Optional[str] = None) -> str:
        url = f"{self.base_url}{path}"
        try:
            text = self.transport.send(method, url, body)
        except Exception as e:
            # для протокола сбой транспорта равен пустому ответу
            self.logger.error(f"Ошибка транспорта {method} {url}: {e}")
            return ""
        return text or ""

    def get_vms(self) -> str:
        """GET /api/vms"""
        return self._send("GET", "/api/vms")

    def launch(self, vmid: int, action: Optional[ConflictAction] = None) -> str:
        """POST /api/launch, со вторым запросом передается action"""
        self.logger.info(f"Запуск VM {vmid}" + (f", действие {action.value}" if action else ""))
        return self._send("POST", "/api/launch", _payload(vmid=vmid, action=action.value if action else None))

    def host_shutdown(self, action: Optional[ConflictAction] = None) -> str:
        """POST /api/host-shutdown"""
        self.logger.info("Выключение хоста" + (f", действие {action.value}" if action else ""))
        return self._send("POST", "/api/host-shutdown", _payload(action=action.value if action else None))

    def fork(self, vmid: int, name: str) -> str:
        """POST /api/fork - копия ВМ под новым именем"""
        self.logger.info(f"Копирование VM {vmid} как '{name}'")
        return self._send("POST", "/api/fork", _payload(vmid=vmid, name=name))
