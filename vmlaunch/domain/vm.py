# domain/vm.py
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_NAME = "Unnamed"
DEFAULT_STATUS = "unknown"
MAX_VMID = 2 ** 64 - 1


def parse_tags(raw: Any) -> List[str]:
    """Теги приходят списком или строкой через ';' / ','"""
    if raw is None:
        return []
    if isinstance(raw, str):
        items = raw.replace(",", ";").split(";")
    elif isinstance(raw, (list, tuple)):
        items = [item for item in raw if isinstance(item, str)]
    else:
        return []
    return [item.strip() for item in items if item.strip()]


class VmRecord(BaseModel):
    """Одна ВМ из ответа сервиса. Значения по умолчанию подставляются при создании"""
    model_config = ConfigDict(frozen=True, extra="ignore")

    vmid: int = Field(ge=0, le=MAX_VMID)
    name: str = DEFAULT_NAME
    status: str = DEFAULT_STATUS
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, value):
        return value or DEFAULT_NAME

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value):
        return value or DEFAULT_STATUS

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value):
        return parse_tags(value)

    @field_validator("notes", mode="before")
    @classmethod
    def _empty_notes(cls, value):
        return value or None

    def is_running(self) -> bool:
        return self.status.lower() == "running"

    def label(self) -> str:
        return f"{self.name} (#{self.vmid}) - {self.status}"

    def to_dict(self):
        return {"vmid": self.vmid, "name": self.name, "status": self.status,
                "tags": list(self.tags), "notes": self.notes}


class ConflictAction(str, Enum):
    """Что сделать с уже запущенной ВМ"""
    shutdown = "shutdown"
    hibernate = "hibernate"
    terminate = "terminate"
    cancel = "cancel"

    @classmethod
    def coerce(cls, value) -> "ConflictAction":
        '''Любое непонятное значение (в т.ч. None от закрытого диалога) - отмена'''
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.cancel


RESOLUTION_ACTIONS = (ConflictAction.shutdown, ConflictAction.hibernate, ConflictAction.terminate)


class OutcomeStatus(str, Enum):
    ok = "ok"
    needs_action = "needs_action"
    error = "error"
    unknown = "unknown"
    cancelled = "cancelled"


ERROR_STATUSES = {"error", "failed"}


def normalize_status(raw: Optional[str], has_error: bool = False) -> OutcomeStatus:
    """Приводит открытую строку статуса сервиса к закрытому набору"""
    value = (raw or "").strip().lower()
    if value == OutcomeStatus.needs_action.value:
        return OutcomeStatus.needs_action
    if value in ERROR_STATUSES or has_error:
        return OutcomeStatus.error
    if value == OutcomeStatus.cancelled.value:
        return OutcomeStatus.cancelled
    if not value:
        return OutcomeStatus.unknown
    return OutcomeStatus.ok


class RunningVm(BaseModel):
    vmid: int
    name: str = DEFAULT_NAME

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, value):
        return value or DEFAULT_NAME


class ConflictDetails(BaseModel):
    """Подробности конфликта из ответа needs_action, только для отображения"""
    running_vm: Optional[RunningVm] = None
    allowed_actions: List[ConflictAction] = Field(default_factory=lambda: list(ConflictAction))
    message: Optional[str] = None


class ServiceReply(BaseModel):
    """Разобранный ответ сервиса на один POST запрос"""
    status: OutcomeStatus = OutcomeStatus.unknown
    raw_status: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    new_vmid: Optional[int] = None
    conflict: Optional[ConflictDetails] = None


class LaunchOutcome(BaseModel):
    status: OutcomeStatus = OutcomeStatus.unknown
    message: Optional[str] = None
    raw_status: Optional[str] = None
    action: Optional[ConflictAction] = None
    conflict: Optional[ConflictDetails] = None
    new_vmid: Optional[int] = None
    vms: Optional[List[VmRecord]] = None

    def is_final(self) -> bool:
        return self.status != OutcomeStatus.needs_action

    def to_dict(self):
        return {
            "status": self.status.value,
            "message": self.message,
            "raw_status": self.raw_status,
            "action": self.action.value if self.action else None,
            "conflict": self.conflict.model_dump(mode="json") if self.conflict else None,
            "new_vmid": self.new_vmid,
            "vms": [vm.to_dict() for vm in self.vms] if self.vms is not None else None,
        }
