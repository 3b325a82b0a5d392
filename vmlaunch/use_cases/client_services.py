# use_cases/client_services.py
import asyncio
import logging
from functools import wraps
from typing import Optional

from vmlaunch.core.http import Transport
from vmlaunch.core.response import ServiceResponse, ServiceStatus
from vmlaunch.domain.parsing import running_vms
from vmlaunch.domain.vm import ConflictAction, LaunchOutcome, OutcomeStatus
from vmlaunch.infrastructure.launch_api_client import LaunchAPIClient
from vmlaunch.use_cases.launch_services import LaunchService


def service_handler(default_msg: str = ""):
    """Декоратор для унифицированной обработки ошибок и ServiceResponse"""
    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                result = await func(self, *args, **kwargs)
                # Если метод вернул ServiceResponse, возвращаем его
                if isinstance(result, ServiceResponse):
                    return result
                # Иначе считаем, что операция успешна и возвращаем стандартный ответ
                return ServiceResponse(status=ServiceStatus.success, message=default_msg or "Done", data=result)
            except Exception as e:
                self.logger.error(f"Ошибка {func.__name__}: {e}")
                return ServiceResponse(status=ServiceStatus.error, message=default_msg or "Operation failed", error=str(e))
        return wrapper
    return decorator


_OUTCOME_STATUS = {
    OutcomeStatus.ok: ServiceStatus.success,
    OutcomeStatus.cancelled: ServiceStatus.cancelled,
    OutcomeStatus.error: ServiceStatus.error,
    OutcomeStatus.unknown: ServiceStatus.warning,
}


def outcome_response(outcome: LaunchOutcome) -> ServiceResponse:
    status = _OUTCOME_STATUS.get(outcome.status, ServiceStatus.warning)
    return ServiceResponse(
        status=status,
        message=outcome.message or "",
        error=outcome.message if status == ServiceStatus.error else None,
        data=outcome.to_dict(),
    )


def fixed_choice(action: Optional[str]):
    """Ответ на конфликт, известный заранее. Нет ответа - отмена"""
    choice = ConflictAction.coerce(action) if action else ConflictAction.cancel

    def resolver() -> ConflictAction:
        return choice
    return resolver


class ClientService:
    """Асинхронный фасад над LaunchService для HTTP хоста.

    Блокирующие вызовы ядра уходят в поток через asyncio.to_thread.
    """

    def __init__(self, logger: logging.Logger, transport: Optional[Transport] = None):
        self.transport = transport
        self.logger = logging.getLogger(f"{logger.name}.{self.__class__.__name__}")

    def _service(self, server: str) -> LaunchService:
        return LaunchService(LaunchAPIClient(server, self.transport, logger=self.logger), logger=self.logger)

    @service_handler("Unable to load VMs.")
    async def get_vms(self, server: str, running_only: bool = False) -> ServiceResponse:
        """Список ВМ, опционально только запущенные"""
        service = self._service(server)
        vms = await asyncio.to_thread(service.list_vms)
        if running_only:
            vms = running_vms(vms)
        return ServiceResponse(status=ServiceStatus.success, message=f"Loaded {len(vms)} VMs.",
                               data={"vms": [vm.to_dict() for vm in vms]})

    @service_handler("Launch failed")
    async def launch_vm(self, server: str, vmid: int, on_conflict: Optional[str] = None) -> ServiceResponse:
        """Запуск ВМ, конфликт решается заранее переданным действием"""
        service = self._service(server)
        outcome = await asyncio.to_thread(service.launch, vmid, fixed_choice(on_conflict))
        return outcome_response(outcome)

    @service_handler("Host shutdown failed")
    async def shutdown_host(self, server: str, on_conflict: Optional[str] = None) -> ServiceResponse:
        """Выключение хоста, конфликт решается так же как при запуске"""
        service = self._service(server)
        outcome = await asyncio.to_thread(service.shutdown_host, fixed_choice(on_conflict))
        return outcome_response(outcome)

    @service_handler("Fork failed")
    async def fork_vm(self, server: str, vmid: int, name: str) -> ServiceResponse:
        """Копия ВМ под новым именем"""
        service = self._service(server)
        outcome = await asyncio.to_thread(service.fork_vm, vmid, name)
        return outcome_response(outcome)
