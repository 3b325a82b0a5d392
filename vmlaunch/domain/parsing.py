# domain/parsing.py
"""Разбор ответов сервиса: поле из объекта и список ВМ.

Ответы разбираются настоящим JSON парсером, но без доверия к их формату:
битый JSON, лишний текст вокруг объектов и неполные записи не приводят
к исключениям. Чего не удалось разобрать, того просто нет в результате.
"""
import json
import logging
import re
from typing import Any, Iterator, List, Optional, Union

from vmlaunch.domain.vm import (
    MAX_VMID,
    ConflictAction,
    ConflictDetails,
    OutcomeStatus,
    RunningVm,
    ServiceReply,
    VmRecord,
    normalize_status,
)

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()
_OPENER = re.compile(r"[{\[]")
_FLAT_OBJECT = re.compile(r"\{[^{}]*\}")
_DIGITS = re.compile(r"[0-9]+")


def _field_pattern(key: str):
    # ключ только целиком в кавычках: "id" не совпадет с "vmid"
    return re.compile(r'"' + re.escape(key) + r'"\s*:\s*(?:"([^"]*)"|([0-9]+)(?![0-9.eE])|null)')


def field_text(obj: dict, key: str) -> Optional[str]:
    """Значение поля уже разобранного объекта как текст.

    Строка отдается как есть, неотрицательное целое - своей десятичной
    записью. null, отсутствие поля и остальные типы дают None.
    """
    value = obj.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int) and value >= 0:
        return str(value)
    return None


def extract_field(blob: Optional[str], key: str) -> Optional[str]:
    """Значение поля key из текста одного JSON объекта или None"""
    if not blob:
        return None
    try:
        parsed = json.loads(blob)
    except (ValueError, RecursionError):
        # битый или слишком глубокий JSON: ищем поле по тексту
        match = _field_pattern(key).search(blob)
        if match is None:
            return None
        if match.group(1) is not None:
            return match.group(1)
        return match.group(2)
    if isinstance(parsed, dict):
        return field_text(parsed, key)
    return None


def _walk(value: Any) -> Iterator[dict]:
    '''Обход дерева в порядке документа. Объект с vmid - кандидат, внутрь него не спускаемся'''
    stack = [value]
    while stack:
        item = stack.pop()
        if isinstance(item, dict):
            if "vmid" in item:
                yield item
                continue
            children = [child for child in item.values() if isinstance(child, (dict, list))]
            if not children:
                yield item
                continue
            stack.extend(reversed(children))
        elif isinstance(item, list):
            stack.extend(reversed([child for child in item if isinstance(child, (dict, list))]))


def iter_candidates(text: str) -> Iterator[Union[dict, str]]:
    """Кандидаты в записи ВМ: разобранные объекты (dict) или сырые {...} из битых мест (str)"""
    pos = 0
    braces_until = 0  # внутри неразобранного массива ищем только объекты
    while True:
        if pos < braces_until:
            start = text.find("{", pos, braces_until)
            if start < 0:
                pos = braces_until
                continue
        else:
            match = _OPENER.search(text, pos)
            if match is None:
                return
            start = match.start()
        try:
            value, end = _DECODER.raw_decode(text, start)
        except RecursionError:
            # вложенность глубже предела интерпретатора: дальше только плоские объекты
            for flat in _FLAT_OBJECT.finditer(text, start):
                yield flat.group(0)
            return
        except ValueError as e:
            flat = _FLAT_OBJECT.match(text, start)
            if flat is not None:
                yield flat.group(0)
                pos = flat.end()
                continue
            if text[start] == "[":
                braces_until = max(braces_until, getattr(e, "pos", start + 1))
            pos = start + 1
            continue
        yield from _walk(value)
        pos = end


def parse_vmid(text: Optional[str]) -> Optional[int]:
    if not text or not _DIGITS.fullmatch(text):
        return None
    vmid = int(text)
    if vmid > MAX_VMID:
        return None
    return vmid


def _to_record(candidate: Union[dict, str]) -> Optional[VmRecord]:
    if isinstance(candidate, dict):
        def get(key):
            return field_text(candidate, key)
        tags = candidate.get("tags")
    else:
        def get(key):
            return extract_field(candidate, key)
        tags = get("tags")

    vmid = parse_vmid(get("vmid"))
    if vmid is None:
        return None
    return VmRecord(vmid=vmid, name=get("name"), status=get("status"), tags=tags, notes=get("notes"))


def parse_vm_list(text: Optional[str]) -> List[VmRecord]:
    """Все записи ВМ из ответа GET /api/vms в порядке появления, без дедупликации"""
    records: List[VmRecord] = []
    if not text:
        return records

    dropped = 0
    for candidate in iter_candidates(text):
        record = _to_record(candidate)
        if record is None:
            dropped += 1
            continue
        records.append(record)

    if dropped:
        logger.debug(f"Пропущено записей без vmid: {dropped}")
    return records


def running_vms(records: List[VmRecord]) -> List[VmRecord]:
    return [vm for vm in records if vm.is_running()]


def _conflict_details(obj: dict, message: Optional[str]) -> ConflictDetails:
    running = obj.get("running_vm")
    running_vm = None
    if isinstance(running, dict):
        vmid = parse_vmid(field_text(running, "vmid"))
        if vmid is not None:
            running_vm = RunningVm(vmid=vmid, name=field_text(running, "name"))

    allowed = obj.get("allowed_actions")
    if isinstance(allowed, list):
        actions = [ConflictAction.coerce(item) for item in allowed if isinstance(item, str)]
        # cancel доступен всегда
        actions = list(dict.fromkeys(actions + [ConflictAction.cancel]))
        return ConflictDetails(running_vm=running_vm, allowed_actions=actions, message=message)
    return ConflictDetails(running_vm=running_vm, message=message)


def parse_reply(text: Optional[str]) -> ServiceReply:
    """Ответ на POST запрос (launch, host-shutdown, fork).

    Пустой или нераспознанный ответ дает статус unknown.
    """
    raw_status = extract_field(text, "status") or None
    message = extract_field(text, "message") or None
    error = extract_field(text, "error") or None
    status = normalize_status(raw_status, has_error=error is not None)

    reply = ServiceReply(
        status=status,
        raw_status=raw_status,
        message=message or error,
        error=error,
        new_vmid=parse_vmid(extract_field(text, "vmid")),
    )
    if status == OutcomeStatus.needs_action:
        try:
            parsed = json.loads(text)
        except (ValueError, RecursionError):
            parsed = None
        obj = parsed if isinstance(parsed, dict) else {}
        reply.conflict = _conflict_details(obj, reply.message)
    return reply
