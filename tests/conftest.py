"""
Pytest configuration and shared fixtures for vmlaunch tests.
"""

import logging

import pytest

VMS_BODY = (
    '[{"vmid":101,"name":"web1","status":"running","tags":["prod"]},'
    '{"vmid":102,"name":"db1","status":"stopped","tags":[]}]'
)


class FakeTransport:
    """In-memory transport: GET returns the VM list, POST pops scripted replies."""

    def __init__(self, replies=None, vms=VMS_BODY):
        self.replies = list(replies or [])
        self.vms = vms
        self.calls = []

    def send(self, method, url, body=None):
        self.calls.append((method, url, body))
        if method == "GET":
            return self.vms
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return ""

    def posts(self):
        return [call for call in self.calls if call[0] == "POST"]

    def gets(self):
        return [call for call in self.calls if call[0] == "GET"]


@pytest.fixture
def logger():
    """Create a logger for testing."""
    return logging.getLogger("test")


@pytest.fixture
def make_transport():
    """Factory for in-memory transports."""
    return FakeTransport
