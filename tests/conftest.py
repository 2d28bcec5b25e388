"""
Shared fixtures for the test suite.

Centralizes the sample catalog, the state store and the fakes standing in for the
device link and the change notifier.
"""
import copy
from typing import Any, Dict, List

import pytest

from model.base_link import BaseDeviceLink
from model.catalog import CommandCatalog
from model.events import EventKind, StateEvent
from model.state_store import CommandStateStore

# ---------------------------------------------------------------------------
# Sample catalog
# ---------------------------------------------------------------------------

SAMPLE_COMMANDS: List[Dict[str, Any]] = [
    {
        "command": "output",
        "name": "Output",
        "operations": [
            {"command": "monitoring", "name": "Monitoring", "type": "Trim", "id": 8, "indices": [0, 1], "min": -100, "max": 0},
            {"command": "phones", "name": "Phones", "type": "Trim", "id": 8, "indices": [2, 3], "min": -100, "max": 0},
            {"command": "listening", "name": "Listening", "type": "Trim", "id": 0, "indices": [], "min": -100, "max": 0},
        ],
    },
    {
        "command": "input",
        "name": "Input",
        "operations": [
            {"command": "in1", "name": "In 1", "type": "Gain", "id": 10, "indices": [0], "min": 0, "max": 60},
            {"command": "in2", "name": "In 2", "type": "Gain", "id": 10, "indices": [1], "min": 0, "max": 60},
            {"command": "in1-2", "name": "In 1-2", "type": "Gain", "id": 10, "indices": [0, 1], "min": 0, "max": 60},
            {"command": "trim3", "name": "In 3 Trim", "type": "Trim", "id": 11, "indices": [0], "min": -100, "max": 0},
            {"command": "pad1", "name": "Pad 1", "type": "Toggle", "id": 3, "indices": [0], "onValue": 1, "offValue": 0},
        ],
    },
    {
        "command": "bus",
        "name": "Bus",
        "operations": [
            {"command": "mix1", "name": "Mix 1", "type": "mixvol", "id": 72, "indices": [0], "muteId": 73, "muteIndices": [0], "min": 0, "max": 1},
            {"command": "mix2", "name": "Mix 2", "type": "mixvol", "id": 72, "indices": [2, 3], "muteId": 73, "muteIndices": [2, 3]},
        ],
    },
    {
        "command": "ui",
        "name": "UI",
        "operations": [
            {"command": "scale", "name": "Scale", "type": "Gain", "id": 0, "indices": [0], "min": 0, "max": 10},
        ],
    },
]


def sample_commands() -> List[Dict[str, Any]]:
    return copy.deepcopy(SAMPLE_COMMANDS)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class EventRecorder:
    """Collects published events in order."""

    def __init__(self) -> None:
        self.events: List[StateEvent] = []

    def __call__(self, event: StateEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: EventKind) -> List[StateEvent]:
        return [e for e in self.events if e.kind is kind]

    def clear(self) -> None:
        self.events.clear()


class FakeLink(BaseDeviceLink):
    """Device link that records payloads instead of touching a socket."""

    def __init__(self, succeed: bool = True) -> None:
        super().__init__()
        self.succeed = succeed
        self.sent: List[str] = []
        self.connected = False
        self.connect_calls = 0
        self.params = ("", 0, "")

    def connect(self) -> bool:
        self.connect_calls += 1
        self.connected = True
        self._emit_status("Connected.")
        return True

    def disconnect(self) -> None:
        self.connected = False

    def set_connection_params(self, ip: str, port: int, sn: str = "") -> None:
        self.params = (ip, port, sn)

    def send(self, payload_hex: str, description: str = "", logical_value: object = None) -> bool:
        if not self.succeed:
            return False
        self.sent.append(payload_hex)
        return True

    def deliver(self, data: bytes) -> None:
        self._emit_frame(data)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def catalog() -> CommandCatalog:
    return CommandCatalog.from_document(sample_commands())


@pytest.fixture
def store(catalog: CommandCatalog) -> CommandStateStore:
    s = CommandStateStore(catalog, state_path=None)
    yield s
    s.close()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def fake_link() -> FakeLink:
    return FakeLink()
