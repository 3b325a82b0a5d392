from dataclasses import dataclass
from typing import Optional, Protocol
import logging

import requests
import urllib3

from vmlaunch.core.settings import settings


@dataclass
class RequestFormat:
    """Описание одного HTTP запроса"""
    method: str = "GET"
    url: str = ""
    body: Optional[str] = None  # уже сериализованный JSON


@dataclass
class ResponseFormat:
    """Результат HTTP запроса. Тело возвращается при любом коде ответа"""
    success: bool = False
    status_code: Optional[int] = None
    text: str = ""
    error: Optional[str] = None


class Transport(Protocol):
    def send(self, method: str, url: str, body: Optional[str] = None) -> str:
        ...


class HttpClient:
    """Синхронный транспорт поверх requests.Session.

    Ошибки сети и таймауты не пробрасываются: send() отдает пустую строку,
    дальше ответ разбирается как нераспознанный.
    """

    def __init__(self, timeout: Optional[float] = None, verify_ssl: Optional[bool] = None,
                 headers: Optional[dict] = None, logger: Optional[logging.Logger] = None,
                 session: Optional[requests.Session] = None):
        self.timeout = settings.HTTP_TIMEOUT if timeout is None else timeout
        self.verify_ssl = settings.VERIFY_SSL if verify_ssl is None else verify_ssl
        self.headers = headers or {}
        self.session = session or requests.Session()
        parent = logger or logging.getLogger(__name__)
        self.logger = logging.getLogger(f"{parent.name}.{self.__class__.__name__}")
        if not self.verify_ssl:
            urllib3.disable_warnings()  # самоподписанный сертификат

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self):
        self.session.close()

    def request(self, request: RequestFormat) -> ResponseFormat:
        headers = dict(self.headers)
        if request.body is not None:
            headers["Content-Type"] = "application/json"
        self.logger.debug(f"{request.method} {request.url}")
        try:
            resp = self.session.request(
                request.method,
                request.url,
                data=request.body.encode("utf-8") if request.body is not None else None,
                headers=headers,
                timeout=self.timeout,
                verify=self.verify_ssl,
            )
        except requests.RequestException as e:
            self.logger.warning(f"Запрос {request.method} {request.url} не выполнен: {e}")
            return ResponseFormat(success=False, error=str(e))

        if not resp.ok:
            self.logger.info(f"{request.method} {request.url} вернул {resp.status_code}")
        return ResponseFormat(success=resp.ok, status_code=resp.status_code, text=resp.text)

    def send(self, method: str, url: str, body: Optional[str] = None) -> str:
        return self.request(RequestFormat(method=method, url=url, body=body)).text
