# use_cases/launch_services.py
"""Запуск ВМ с разрешением конфликта.

Протокол последовательный: первый запрос, при needs_action - вопрос оператору,
затем второй запрос с выбранным действием. После завершения список ВМ
перечитывается. Отмена оператором - штатное завершение без второго запроса.
"""
import logging
from typing import Callable, List, Optional

from vmlaunch.core.http import Transport
from vmlaunch.domain.parsing import parse_reply, parse_vm_list
from vmlaunch.domain.vm import (
    ConflictAction,
    ConflictDetails,
    LaunchOutcome,
    OutcomeStatus,
    ServiceReply,
    VmRecord,
)
from vmlaunch.infrastructure.launch_api_client import LaunchAPIClient

ConflictResolver = Callable[[], ConflictAction]

LAUNCH_SUBMITTED = "Launch request submitted."
LAUNCH_CANCELLED = "Launch cancelled."
SHUTDOWN_SUBMITTED = "Host shutdown request submitted."
SHUTDOWN_CANCELLED = "Host shutdown cancelled."
FORK_SUBMITTED = "Fork request submitted."


class LaunchService:
    def __init__(self, api_client: LaunchAPIClient, logger: Optional[logging.Logger] = None):
        self.client = api_client
        parent = logger or logging.getLogger(__name__)
        self.logger = logging.getLogger(f"{parent.name}.{self.__class__.__name__}")

    def list_vms(self) -> List[VmRecord]:
        """Текущий список ВМ. Битые записи пропускаются, сбой сети дает пустой список"""
        vms = parse_vm_list(self.client.get_vms())
        self.logger.info(f"Загружено ВМ: {len(vms)}")
        return vms

    def _ask(self, resolver: ConflictResolver) -> ConflictAction:
        try:
            choice = resolver()
        except Exception as e:
            self.logger.error(f"Ошибка выбора действия, считаем отменой: {e}")
            return ConflictAction.cancel
        return ConflictAction.coerce(choice)

    def _finish(self, reply: ServiceReply, fallback: str, action: Optional[ConflictAction] = None,
                conflict: Optional[ConflictDetails] = None) -> LaunchOutcome:
        status = reply.status
        if status == OutcomeStatus.needs_action:
            # повторный needs_action после выбора действия заново не согласуется
            self.logger.warning("Сервис снова запросил действие, переговоры завершены")
            status = OutcomeStatus.unknown
        outcome = LaunchOutcome(
            status=status,
            message=reply.message or fallback,
            raw_status=reply.raw_status,
            action=action,
            conflict=conflict,
            new_vmid=reply.new_vmid,
        )
        outcome.vms = self.list_vms()
        return outcome

    def _negotiate(self, first_request: Callable[[], str],
                   second_request: Callable[[ConflictAction], str],
                   resolver: ConflictResolver, fallback: str, cancelled: str) -> LaunchOutcome:
        first = parse_reply(first_request())
        if first.status != OutcomeStatus.needs_action:
            return self._finish(first, fallback)

        self.logger.info(f"Сервис запросил действие: {first.message or first.raw_status}")
        action = self._ask(resolver)
        if action == ConflictAction.cancel:
            self.logger.info("Оператор отменил операцию, второй запрос не отправляется")
            return LaunchOutcome(
                status=OutcomeStatus.cancelled,
                message=cancelled,
                raw_status=first.raw_status,
                action=action,
                conflict=first.conflict,
            )

        second = parse_reply(second_request(action))
        return self._finish(second, fallback, action=action, conflict=first.conflict)

    def launch(self, vmid: int, resolver: ConflictResolver) -> LaunchOutcome:
        """Запуск ВМ. resolver вызывается только при конфликте"""
        return self._negotiate(
            lambda: self.client.launch(vmid),
            lambda action: self.client.launch(vmid, action),
            resolver,
            LAUNCH_SUBMITTED,
            LAUNCH_CANCELLED,
        )

    def shutdown_host(self, resolver: ConflictResolver) -> LaunchOutcome:
        """Выключение хоста, тот же протокол что и при запуске"""
        return self._negotiate(
            self.client.host_shutdown,
            self.client.host_shutdown,
            resolver,
            SHUTDOWN_SUBMITTED,
            SHUTDOWN_CANCELLED,
        )

    def fork_vm(self, vmid: int, name: str) -> LaunchOutcome:
        """Копия ВМ. Номер новой ВМ - в new_vmid, если сервис его вернул"""
        return self._finish(parse_reply(self.client.fork(vmid, name)), FORK_SUBMITTED)


def list_vms(base: str, transport: Optional[Transport] = None) -> List[VmRecord]:
    return LaunchService(LaunchAPIClient(base, transport)).list_vms()


def launch(base: str, vmid: int, resolver: ConflictResolver,
           transport: Optional[Transport] = None) -> LaunchOutcome:
    return LaunchService(LaunchAPIClient(base, transport)).launch(vmid, resolver)
