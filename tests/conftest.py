"""Shared fixtures: a controllable clock and a fake HTTP session."""
import json

import pytest
import requests


CLEAN_PAYLOAD = {
    "CommandType": "blacklist",
    "Failed": [],
    "Information": [],
    "Passed": [{"Name": "Spamhaus ZEN"}, {"Name": "Barracuda"}],
}

LISTED_PAYLOAD = {
    "CommandType": "blacklist",
    "Failed": [{"Name": "Spamhaus ZEN", "IsBlackListed": True}],
    "Information": [],
    "Passed": [{"Name": "Barracuda"}],
}


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, text: str = "", reason: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text or (json.dumps(payload) if payload is not None else "")
        self.reason = reason or ("OK" if status_code < 400 else "Error")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """
    Stand-in for requests.Session.

    `responder(url, headers)` returns a FakeResponse or raises. Every call is
    recorded in `calls` as (url, headers, timeout).
    """

    def __init__(self, responder=None):
        self.responder = responder or (lambda url, headers: FakeResponse(200, CLEAN_PAYLOAD))
        self.calls = []
        self.closed = False

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers, timeout))
        return self.responder(url, headers)

    def close(self):
        self.closed = True

    @property
    def keys_used(self):
        return [headers["Authorization"] for _, headers, _ in self.calls]


def raise_timeout(url, headers):
    raise requests.exceptions.Timeout(f"timed out: {url}")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return FakeSession()
