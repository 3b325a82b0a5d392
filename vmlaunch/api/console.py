# api/console.py
"""Терминальный клиент: таблица ВМ, выбор ВМ и действия при конфликте.

    vmlaunch --server http://127.0.0.1:3000
    vmlaunch --list
    vmlaunch --vmid 101 --action shutdown
"""
import argparse
import sys
from typing import List, Optional, Union

import questionary
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from vmlaunch.core.settings import settings, logger
from vmlaunch.domain.vm import ConflictAction, LaunchOutcome, OutcomeStatus, VmRecord
from vmlaunch.infrastructure.launch_api_client import InvalidServerAddress, LaunchAPIClient
from vmlaunch.use_cases.client_services import fixed_choice
from vmlaunch.use_cases.launch_services import LaunchService

console = Console()

CONFLICT_QUESTION = "Another VM is running. Choose an action for the currently running VM:"
REFRESH = "__refresh__"
QUIT = "__quit__"

_STATUS_STYLE = {"running": "green", "stopped": "red"}
_OUTCOME_STYLE = {
    OutcomeStatus.ok: "green",
    OutcomeStatus.cancelled: "yellow",
    OutcomeStatus.error: "bold red",
    OutcomeStatus.unknown: "cyan",
}


def render_vms(vms: List[VmRecord]) -> Table:
    table = Table(title="VM inventory", expand=False)
    table.add_column("VMID", justify="right", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Tags", style="dim")
    for vm in vms:
        style = _STATUS_STYLE.get(vm.status.lower(), "yellow")
        # имена и теги приходят от сервиса, разметку rich в них не разбираем
        tags = ", ".join(vm.tags) or "no tags"
        table.add_row(str(vm.vmid), escape(vm.name), f"[{style}]{escape(vm.status)}[/]", escape(tags))
    return table


def prompt_conflict_action() -> ConflictAction:
    """Диалог выбора действия. Esc / Ctrl+C (ask() вернет None) - отмена"""
    choice = questionary.select(
        CONFLICT_QUESTION,
        choices=[
            questionary.Choice("Shutdown", value=ConflictAction.shutdown.value),
            questionary.Choice("Hibernate", value=ConflictAction.hibernate.value),
            questionary.Choice("Terminate", value=ConflictAction.terminate.value),
            questionary.Choice("Cancel", value=ConflictAction.cancel.value),
        ],
    ).ask()
    return ConflictAction.coerce(choice)


def select_vm(vms: List[VmRecord]) -> Optional[Union[int, str]]:
    choices = [questionary.Choice(vm.label(), value=vm.vmid) for vm in vms]
    choices.append(questionary.Separator())
    choices.append(questionary.Choice("Refresh", value=REFRESH))
    choices.append(questionary.Choice("Quit", value=QUIT))
    return questionary.select("Launch VM", choices=choices).ask()


def show_outcome(outcome: LaunchOutcome):
    style = _OUTCOME_STYLE.get(outcome.status, "white")
    console.print(Text(outcome.message or "", style=style))
    if outcome.vms is not None:
        console.print(render_vms(outcome.vms))


def refresh(service: LaunchService) -> List[VmRecord]:
    console.print("[cyan]Loading VM inventory...[/]")
    vms = service.list_vms()
    console.print(render_vms(vms))
    console.print(f"Loaded {len(vms)} VMs.")
    return vms


def interactive(service: LaunchService):
    vms = refresh(service)
    while True:
        selected = select_vm(vms)
        if selected is None or selected == QUIT:
            return
        if selected == REFRESH:
            vms = refresh(service)
            continue
        outcome = service.launch(selected, prompt_conflict_action)
        show_outcome(outcome)
        if outcome.vms is not None:
            vms = outcome.vms


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vmlaunch", description="List and launch VMs on a remote VM service")
    parser.add_argument("--server", default=settings.SERVER_URL, help="Server base address")
    parser.add_argument("--list", action="store_true", help="Print the VM list and exit")
    parser.add_argument("--vmid", type=int, help="Launch this VM without the selection menu")
    parser.add_argument("--action", choices=[action.value for action in ConflictAction],
                        help="Answer for a conflict with a running VM (asked interactively when omitted)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        service = LaunchService(LaunchAPIClient(args.server, logger=logger), logger=logger)
    except InvalidServerAddress:
        console.print("[bold red]Enter a server URL first.[/]")
        return 2

    if args.list:
        refresh(service)
        return 0

    if args.vmid is not None:
        resolver = fixed_choice(args.action) if args.action else prompt_conflict_action
        outcome = service.launch(args.vmid, resolver)
        show_outcome(outcome)
        return 1 if outcome.status == OutcomeStatus.error else 0

    interactive(service)
    return 0


if __name__ == "__main__":
    sys.exit(main())
