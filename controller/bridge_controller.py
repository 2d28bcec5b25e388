"""
Bridge controller: the generic parameter update algorithm (mute / value / delta),
the listening surface, send-and-report to the device link, and inbound wiring.
Coordinates the state store, the protocol codec, the link and the change notifier.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from config.connection_settings import load_connection_settings, update_connection_settings
from config.settings import SETTINGS_JSON_PATH
from model.base_link import BaseDeviceLink
from model.catalog import ParameterKey, ParameterType
from model.events import Publisher, StateEvent, full_state, link_status, single_update
from model.output_selector import ActiveOutputSelector, output_key
from model.protocol import FrameDecoder, OutboundCommand, encode_mute, encode_update
from model.state_store import CommandStateStore
from utils.logger import get_logger

LISTENING_OPERATION: str = "listening"


class MuteAction(str, Enum):
    TOGGLE = "t"
    MUTE = "1"
    UNMUTE = "0"


def parse_mute_param(raw: Any) -> Optional[MuteAction]:
    """Accepts 't' / '1' / '0' (query style), a MuteAction, or True for toggle."""
    if raw is None or raw is False:
        return None
    if isinstance(raw, MuteAction):
        return raw
    if raw is True:
        return MuteAction.TOGGLE
    text = str(raw).strip().lower()
    for action in MuteAction:
        if action.value == text:
            return action
    raise ValueError(f"Invalid mute parameter: {raw!r}")


def _parse_number(raw: Any, what: str) -> Optional[float]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise ValueError(f"Invalid {what}: {raw!r}")
    try:
        number = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {what}: {raw!r}") from None
    if not math.isfinite(number):
        raise ValueError(f"Invalid {what}: {raw!r}")
    return number


class ResultStatus(str, Enum):
    SENT = "sent"
    SEND_FAILED = "send_failed"
    LOCAL_ONLY = "local_only"
    NO_CHANGE = "no_change"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"


@dataclass(frozen=True)
class CommandResult:
    """Outcome reported to the caller that issued the request (never broadcast)."""
    status: ResultStatus
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (ResultStatus.SENT, ResultStatus.LOCAL_ONLY, ResultStatus.NO_CHANGE)


class BridgeController:
    """
    Entry point for every state change, whether it comes from a UI request or the
    device. All mutations go through the state store; every attempted send
    publishes the resulting state.
    """

    def __init__(self, store: CommandStateStore, link: Optional[BaseDeviceLink] = None,
                 publish: Optional[Publisher] = None, settings_path: str = SETTINGS_JSON_PATH):
        self.logger = get_logger(__name__)
        self.store = store
        self.link = link
        self.settings_path = settings_path
        self._publish = publish
        self.link_status = link.status if link is not None else "Not Connected."

        self.selector = ActiveOutputSelector(store, self.publish)
        self.decoder = FrameDecoder(store, self.publish)

        if link is not None:
            link.set_frame_handler(self.handle_device_frame)
            link.set_status_handler(self.update_link_status)

    def publish(self, event: StateEvent) -> None:
        if self._publish is None:
            return
        try:
            self._publish(event)
        except Exception as e:
            self.logger.error(f"Change notifier failed for {event.kind.value}: {e}")

    # --- UI requests ---

    def handle_command(self, category: str, operation: str, mute: Any = None,
                       delta: Any = None, value: Any = None) -> CommandResult:
        if operation == LISTENING_OPERATION:
            return self.handle_listening(mute=mute, delta=delta, value=value)

        key = (category, operation)
        if self.store.get(*key) is None:
            self.logger.warning(f"Invalid command: {category}/{operation}")
            return CommandResult(ResultStatus.NOT_FOUND, f"Command not found: {category}/{operation}")

        try:
            action = parse_mute_param(mute)
            delta_value = _parse_number(delta, "delta")
            absolute_value = _parse_number(value, "value")
        except ValueError as e:
            return CommandResult(ResultStatus.BAD_REQUEST, str(e))

        if action is not None:
            return self._apply_mute(key, action)
        if delta_value is not None or absolute_value is not None:
            return self._apply_value(key, delta_value, absolute_value)
        return CommandResult(ResultStatus.BAD_REQUEST, "Request must include mute, value or delta.")

    def handle_listening(self, mute: Any = None, delta: Any = None, value: Any = None) -> CommandResult:
        try:
            action = parse_mute_param(mute)
        except ValueError as e:
            return CommandResult(ResultStatus.BAD_REQUEST, str(e))

        if action is MuteAction.TOGGLE:
            return self._toggle_listening()

        if (delta is not None and delta != "") or (value is not None and value != ""):
            category, operation = self.selector.active_key()
            return self.handle_command(category, operation, delta=delta, value=value)

        return CommandResult(ResultStatus.BAD_REQUEST, "Listening requires a mute toggle, value or delta.")

    def _toggle_listening(self) -> CommandResult:
        active = self.selector.active_device
        with self.store.locked(output_key(active), output_key(active.other())):
            keys = self.selector.toggle()
            if keys is None:
                return CommandResult(ResultStatus.NOT_FOUND, "Output parameters are not defined in the catalog.")
            old_key, new_key = keys
            # old output first so both are never audible at once
            old = self.store.get(*old_key)
            self._send(old_key, encode_update(old.definition, old.current_value))
            new = self.store.get(*new_key)
            return self._send(new_key, encode_update(new.definition, new.current_value))

    # --- Generic update algorithm ---

    def _apply_mute(self, key: ParameterKey, action: MuteAction) -> CommandResult:
        with self.store.locked(key):
            parameter = self.store.get(*key)
            definition = parameter.definition
            is_muted = parameter.muted
            should_mute = not is_muted and action in (MuteAction.TOGGLE, MuteAction.MUTE)
            should_unmute = is_muted and action in (MuteAction.TOGGLE, MuteAction.UNMUTE)

            if should_mute:
                if definition.type is ParameterType.MIXVOL:
                    self.store.update(*key, is_muted=True)
                    outbound = encode_mute(definition, True)
                else:
                    self.store.update(*key, current_value=definition.min, pre_mute_value=parameter.current_value)
                    outbound = encode_update(definition, definition.min)
            elif should_unmute:
                if definition.type is ParameterType.MIXVOL:
                    self.store.update(*key, is_muted=False)
                    outbound = encode_mute(definition, False)
                else:
                    self.store.update(*key, current_value=parameter.pre_mute_value)
                    outbound = encode_update(definition, parameter.pre_mute_value)
            else:
                return CommandResult(ResultStatus.NO_CHANGE, "No state change.")

            return self._send(key, outbound)

    def _apply_value(self, key: ParameterKey, delta: Optional[float], value: Optional[float]) -> CommandResult:
        with self.store.locked(key):
            parameter = self.store.get(*key)
            definition = parameter.definition
            base = parameter.pre_mute_value if parameter.muted else parameter.current_value
            target = base + delta if delta is not None else value
            final_value = max(definition.min, min(definition.max, target))

            fields: Dict[str, Any] = {"current_value": final_value, "pre_mute_value": final_value}
            if definition.type is not ParameterType.MIXVOL:
                # mix-bus volumes keep their explicit mute flag
                fields["is_muted"] = False
            self.store.update(*key, **fields)
            self.store.propagate_mono(*key, final_value)
            return self._send(key, encode_update(definition, final_value))

    def _send(self, key: ParameterKey, outbound: Optional[OutboundCommand]) -> CommandResult:
        if outbound is None:
            result = CommandResult(ResultStatus.LOCAL_ONLY, "State updated (not transmitted).")
        elif self.link is None:
            self.logger.error(f"No device link to send {outbound.display_name}")
            result = CommandResult(ResultStatus.SEND_FAILED, "Failed to send command.")
        elif self.link.send(outbound.payload_hex, outbound.display_name, outbound.logical_value):
            result = CommandResult(
                ResultStatus.SENT,
                f"State send to device        : {outbound.display_name} = "
                f"{outbound.logical_value}({outbound.payload_hex})",
            )
        else:
            result = CommandResult(ResultStatus.SEND_FAILED, "Failed to send command.")

        # state was updated optimistically, so listeners hear about it either way
        self.publish(single_update(self.store.get(*key)))
        return result

    # --- Device side ---

    def handle_device_frame(self, data: bytes) -> Optional[ParameterKey]:
        return self.decoder.handle_frame(data)

    def update_link_status(self, message: str) -> None:
        self.link_status = message
        self.publish(link_status(message))

    def reconnect(self, ip: Optional[str] = None, port: Optional[int] = None,
                  sn: Optional[str] = None) -> CommandResult:
        """Persist a new device address (if it changed) and force a reconnect."""
        if self.link is None:
            return CommandResult(ResultStatus.SEND_FAILED, "No device link configured.")

        changed = update_connection_settings(ip=ip, port=port, sn=sn, path=self.settings_path)
        connection = load_connection_settings(self.settings_path)["connectionSettings"]
        self.link.set_connection_params(
            connection["deviceIp"], int(connection["devicePort"]), str(connection.get("deviceSn") or "")
        )
        self.link.reconnect()
        if changed:
            return CommandResult(ResultStatus.SENT, "Settings updated. Reconnecting...")
        return CommandResult(ResultStatus.SENT, "Settings unchanged. Forcing reconnect...")

    # --- Full state ---

    def initial_state(self) -> Dict[str, Any]:
        return {
            "commands": self._command_tree(),
            "activeOutputDevice": self.store.active_output_device.value,
            "linkStatus": self.link_status,
            "settings": load_connection_settings(self.settings_path),
        }

    def full_state_event(self) -> StateEvent:
        return full_state(self._command_tree(), self.store.active_output_device)

    def _command_tree(self):
        tree = []
        for category in self.store.catalog.categories:
            tree.append({
                "command": category.command,
                "name": category.name,
                "operations": [self.store.get(*d.key).to_dict() for d in category.operations],
            })
        return tree
