"""
Logical state-change events emitted by the core for the change notifier.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List

from model.state_store import ActiveOutputDevice, Parameter


class EventKind(str, Enum):
    SINGLE_UPDATE = "SINGLE_STATE_UPDATE"
    ACTIVE_DEVICE_CHANGED = "ACTIVE_DEVICE_UPDATE"
    LINK_STATUS = "LINK_STATUS_UPDATE"
    FULL_STATE = "FULL_STATE_UPDATE"


@dataclass(frozen=True)
class StateEvent:
    kind: EventKind
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> Dict[str, Any]:
        return {"type": self.kind.value, "payload": self.payload}


Publisher = Callable[[StateEvent], None]


def single_update(parameter: Parameter) -> StateEvent:
    definition = parameter.definition
    return StateEvent(EventKind.SINGLE_UPDATE, {
        "category": definition.category,
        "operation": definition.operation,
        "key": definition.composite_key,
        "state": parameter.to_dict(),
    })


def active_device_changed(device: ActiveOutputDevice) -> StateEvent:
    return StateEvent(EventKind.ACTIVE_DEVICE_CHANGED, {"activeDevice": device.value})


def link_status(status: str) -> StateEvent:
    return StateEvent(EventKind.LINK_STATUS, {"status": status})


def full_state(commands: List[Dict[str, Any]], device: ActiveOutputDevice) -> StateEvent:
    return StateEvent(EventKind.FULL_STATE, {"commands": commands, "activeOutputDevice": device.value})
