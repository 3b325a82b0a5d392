"""
Tests for the launch negotiation protocol in vmlaunch.use_cases.launch_services.

Tests cover:
- one-step launch without a conflict
- operator cancellation
- resolution with a second request
- degraded transport and unparsable replies
- host shutdown and fork
- module-level list_vms / launch helpers
"""

# pylint: disable=redefined-outer-name

import json
import logging
from unittest.mock import Mock

import pytest

from vmlaunch.domain.vm import ConflictAction, OutcomeStatus
from vmlaunch.infrastructure.launch_api_client import InvalidServerAddress, LaunchAPIClient
from vmlaunch.use_cases.launch_services import (
    LAUNCH_CANCELLED,
    LAUNCH_SUBMITTED,
    LaunchService,
    launch,
    list_vms,
)

BASE = "http://vms.local:3000"


@pytest.fixture
def build_service(make_transport, logger):
    """Build a LaunchService over an in-memory transport."""
    def _build(replies=None, **kwargs):
        transport = make_transport(replies, **kwargs)
        return LaunchService(LaunchAPIClient(BASE, transport, logger=logger), logger=logger), transport
    return _build


def never_called():
    raise AssertionError("resolver must not be called")


class TestLaunchWithoutConflict:
    """Tests for a launch that needs no operator decision."""

    def test_ok_reply(self, build_service):
        """Test that an ok reply finishes with its message and no prompt."""
        service, transport = build_service(['{"status":"ok","message":"started"}'])
        resolver = Mock()

        outcome = service.launch(101, resolver)

        assert (outcome.status, outcome.message) == (OutcomeStatus.ok, "started")
        resolver.assert_not_called()
        assert transport.posts() == [("POST", f"{BASE}/api/launch", '{"vmid":101}')]

    def test_refresh_after_done(self, build_service):
        """Test that the list is refreshed after the launch."""
        service, transport = build_service(['{"status":"started","message":"Launch sequence started."}'])

        outcome = service.launch(102, never_called)

        assert transport.calls[-1] == ("GET", f"{BASE}/api/vms", None)
        assert [vm.vmid for vm in outcome.vms] == [101, 102]
        assert outcome.raw_status == "started"

    def test_missing_message_uses_fallback(self, build_service):
        """Test the generic message when the reply has none."""
        service, _ = build_service(['{"status":"ok"}'])
        assert service.launch(1, never_called).message == LAUNCH_SUBMITTED


class TestLaunchCancelled:
    """Tests for operator cancellation."""

    def test_cancel_sends_no_second_request(self, build_service):
        """Test that cancel ends the negotiation without a second request."""
        service, transport = build_service(['{"status":"needs_action"}'])

        outcome = service.launch(101, lambda: ConflictAction.cancel)

        assert outcome.status == OutcomeStatus.cancelled
        assert outcome.message == LAUNCH_CANCELLED
        assert outcome.action == ConflictAction.cancel
        assert len(transport.posts()) == 1
        assert transport.gets() == []
        assert outcome.vms is None
        assert outcome.is_final()

    @pytest.mark.parametrize("answer", [None, "", "reboot"])
    def test_unknown_answer_is_cancel(self, build_service, answer):
        """Test that a dismissed or unknown answer counts as cancel."""
        service, transport = build_service(['{"status":"needs_action"}'])
        outcome = service.launch(101, lambda: answer)
        assert outcome.status == OutcomeStatus.cancelled
        assert len(transport.posts()) == 1

    def test_resolver_error_is_cancel(self, build_service):
        """Test that a failing resolver counts as cancel."""
        service, transport = build_service(['{"status":"needs_action"}'])
        outcome = service.launch(101, Mock(side_effect=RuntimeError("dialog closed")))
        assert outcome.status == OutcomeStatus.cancelled
        assert len(transport.posts()) == 1

    def test_cancel_log_and_message(self, build_service, caplog):
        """Test that the log record is Russian and the operator message stays English."""
        service, _ = build_service(['{"status":"needs_action"}'])
        with caplog.at_level(logging.INFO, logger="test"):
            outcome = service.launch(101, lambda: ConflictAction.cancel)
        assert outcome.message == "Launch cancelled."
        assert "Оператор отменил операцию" in caplog.text
        assert "Launch cancelled." not in caplog.text


class TestLaunchResolved:
    """Tests for the two-step negotiation."""

    def test_shutdown_then_done(self, build_service):
        """Test that the second reply message is the final message."""
        first = json.dumps({
            "status": "needs_action",
            "message": "A VM is currently running; choose an action.",
            "running_vm": {"vmid": 100, "name": "games"},
            "allowed_actions": ["shutdown", "hibernate", "terminate", "cancel"],
        })
        service, transport = build_service([first, '{"status":"ok","message":"done"}'])
        resolver = Mock(return_value=ConflictAction.shutdown)

        outcome = service.launch(101, resolver)

        resolver.assert_called_once_with()
        assert outcome.status == OutcomeStatus.ok
        assert outcome.message == "done"
        assert outcome.action == ConflictAction.shutdown
        assert outcome.conflict.running_vm.name == "games"
        assert [call[2] for call in transport.posts()] == [
            '{"vmid":101}',
            '{"vmid":101,"action":"shutdown"}',
        ]
        assert len(transport.gets()) == 1

    @pytest.mark.parametrize("action", ["hibernate", "terminate"])
    def test_action_literal_sent(self, build_service, action):
        """Test that the chosen action string goes into the payload."""
        service, transport = build_service(['{"status":"needs_action"}', '{"status":"ok"}'])
        outcome = service.launch(7, lambda: action)
        assert json.loads(transport.posts()[1][2]) == {"vmid": 7, "action": action}
        assert outcome.message == LAUNCH_SUBMITTED

    def test_second_needs_action_is_terminal(self, build_service):
        """Test that a repeated needs_action is not negotiated again."""
        service, transport = build_service(['{"status":"needs_action"}', '{"status":"needs_action"}'])
        resolver = Mock(return_value="terminate")

        outcome = service.launch(7, resolver)

        assert resolver.call_count == 1
        assert len(transport.posts()) == 2
        assert outcome.status == OutcomeStatus.unknown
        assert outcome.is_final()
        assert outcome.message == LAUNCH_SUBMITTED

    def test_second_reply_empty(self, build_service):
        """Test that an empty second reply still finishes."""
        service, _ = build_service(['{"status":"needs_action"}', ""])
        outcome = service.launch(7, lambda: ConflictAction.shutdown)
        assert outcome.status == OutcomeStatus.unknown
        assert outcome.message == LAUNCH_SUBMITTED


class TestDegradedTransport:
    """Tests for failures of the transport or the service."""

    @pytest.mark.parametrize("reply", ["", "garbage", "<html>504 Gateway Timeout</html>"])
    def test_unparsable_first_reply(self, build_service, reply):
        """Test that an unparsable reply degrades to unknown and Done."""
        service, transport = build_service([reply])
        outcome = service.launch(1, never_called)
        assert outcome.status == OutcomeStatus.unknown
        assert outcome.message == LAUNCH_SUBMITTED
        assert len(transport.gets()) == 1

    def test_transport_exception(self, build_service):
        """Test that a raising transport is treated as an empty reply."""
        service, _ = build_service([TimeoutError("timed out")])
        outcome = service.launch(1, never_called)
        assert outcome.status == OutcomeStatus.unknown

    def test_error_reply(self, build_service):
        """Test that a service error is reported with its text."""
        service, _ = build_service(['{"error":"VM 1 not found"}'])
        outcome = service.launch(1, never_called)
        assert outcome.status == OutcomeStatus.error
        assert outcome.message == "VM 1 not found"

    def test_deeply_nested_reply(self, build_service):
        """Test that a reply nested beyond the interpreter limit degrades to unknown."""
        service, transport = build_service(["[" * 100000], vms="[" * 100000)
        outcome = service.launch(1, never_called)
        assert outcome.status == OutcomeStatus.unknown
        assert outcome.message == LAUNCH_SUBMITTED
        assert outcome.vms == []
        assert len(transport.posts()) == 1

    def test_list_on_empty_reply(self, build_service):
        """Test that an empty listing reply gives an empty list."""
        service, _ = build_service(vms="")
        assert service.list_vms() == []


class TestHostShutdown:
    """Tests for shutdown_host."""

    def test_negotiated_shutdown(self, build_service):
        """Test the shutdown negotiation payloads."""
        service, transport = build_service([
            '{"status":"needs_action"}',
            '{"status":"started","message":"Host shutdown sequence started."}',
        ])
        outcome = service.shutdown_host(lambda: ConflictAction.hibernate)
        assert outcome.message == "Host shutdown sequence started."
        assert [call[2] for call in transport.posts()] == ["{}", '{"action":"hibernate"}']
        assert transport.posts()[0][1] == f"{BASE}/api/host-shutdown"

    def test_cancelled_shutdown(self, build_service):
        """Test cancellation of a host shutdown."""
        service, _ = build_service(['{"status":"needs_action"}'])
        outcome = service.shutdown_host(lambda: "cancel")
        assert outcome.status == OutcomeStatus.cancelled
        assert outcome.message == "Host shutdown cancelled."


class TestForkVm:
    """Tests for fork_vm."""

    def test_fork(self, build_service):
        """Test the fork payload and the new vmid."""
        service, transport = build_service(['{"status":"created","message":"VM fork created.","vmid":205}'])
        outcome = service.fork_vm(101, "web1-copy")
        assert json.loads(transport.posts()[0][2]) == {"vmid": 101, "name": "web1-copy"}
        assert outcome.new_vmid == 205
        assert outcome.message == "VM fork created."
        assert outcome.vms is not None


class TestModuleHelpers:
    """Tests for list_vms and launch helpers."""

    def test_list_vms(self, make_transport):
        """Test listing through the module helper."""
        vms = list_vms(BASE + "/", make_transport())
        assert [(vm.vmid, vm.name) for vm in vms] == [(101, "web1"), (102, "db1")]

    def test_launch(self, make_transport):
        """Test launching through the module helper."""
        transport = make_transport(['{"status":"ok","message":"started"}'])
        outcome = launch(BASE, 101, never_called, transport)
        assert outcome.message == "started"

    @pytest.mark.parametrize("base", ["", "   ", None])
    def test_empty_base_rejected(self, make_transport, base):
        """Test that an empty base address is rejected before any request."""
        transport = make_transport()
        with pytest.raises(InvalidServerAddress):
            launch(base, 101, never_called, transport)
        with pytest.raises(InvalidServerAddress):
            list_vms(base, transport)
        assert transport.calls == []
