# api/launch_routes.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from vmlaunch.core.settings import settings, logger
from vmlaunch.domain.vm import ConflictAction
from vmlaunch.use_cases.client_services import ClientService

client = APIRouter(prefix=settings.API_PREFIX, tags=["client"])


class LaunchBody(BaseModel):
    vmid: int
    on_conflict: Optional[ConflictAction] = None


class ShutdownBody(BaseModel):
    on_conflict: Optional[ConflictAction] = None


class ForkBody(BaseModel):
    vmid: int
    name: str


def get_client_service() -> ClientService:
    return ClientService(logger)


def server_address(server: Optional[str] = Query(None, description="Адрес сервиса ВМ, по умолчанию SERVER_URL")) -> str:
    return server if server is not None else settings.SERVER_URL


@client.get("/vms", summary="Список ВМ", description='Список ВМ сервиса, running=true - только запущенные')
async def get_vms(running: bool = False, server: str = Depends(server_address),
                  service: ClientService = Depends(get_client_service)):
    response = await service.get_vms(server, running_only=running)
    return response.to_dict()


@client.post("/launch", summary="Запуск ВМ",
             description='Запуск ВМ. При конфликте применяется on_conflict, без него запуск отменяется')
async def launch_vm(body: LaunchBody, server: str = Depends(server_address),
                    service: ClientService = Depends(get_client_service)):
    on_conflict = body.on_conflict.value if body.on_conflict else None
    response = await service.launch_vm(server, body.vmid, on_conflict)
    return response.to_dict()


@client.post("/host-shutdown", summary="Выключение хоста")
async def shutdown_host(body: ShutdownBody, server: str = Depends(server_address),
                        service: ClientService = Depends(get_client_service)):
    on_conflict = body.on_conflict.value if body.on_conflict else None
    response = await service.shutdown_host(server, on_conflict)
    return response.to_dict()


@client.post("/fork", summary="Копия ВМ")
async def fork_vm(body: ForkBody, server: str = Depends(server_address),
                  service: ClientService = Depends(get_client_service)):
    response = await service.fork_vm(server, body.vmid, body.name)
    return response.to_dict()
