"""
Command state store: live values layered over the immutable command catalog.

Every parameter has one state record guarded by its own lock, so independent
parameters never block each other while a read-modify-write on one parameter is
exclusive. Reverse indices from protocol and mute addresses are built once, at
construction, and point back at the same records.
"""
import math
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from config.settings import SAVE_DEBOUNCE_SEC
from model.catalog import CommandCatalog, ParameterDef, ParameterKey, ParameterType
from utils.debounce import DebouncedTimer
from utils.json_store import load_json, save_json
from utils.logger import get_logger


class ActiveOutputDevice(str, Enum):
    MONITORING = "Monitoring"
    PHONES = "Phones"

    @property
    def operation(self) -> str:
        return self.value.lower()

    def other(self) -> "ActiveOutputDevice":
        return ActiveOutputDevice.PHONES if self is ActiveOutputDevice.MONITORING else ActiveOutputDevice.MONITORING

    @classmethod
    def parse(cls, raw: Any) -> Optional["ActiveOutputDevice"]:
        for member in cls:
            if member.value == raw:
                return member
        return None


@dataclass(frozen=True)
class Parameter:
    """Point-in-time view of one parameter: its definition plus live state."""
    definition: ParameterDef
    current_value: float
    pre_mute_value: float
    is_muted: bool

    @property
    def key(self) -> ParameterKey:
        return self.definition.key

    @property
    def type(self) -> ParameterType:
        return self.definition.type

    @property
    def min(self) -> float:
        return self.definition.min

    @property
    def max(self) -> float:
        return self.definition.max

    @property
    def muted(self) -> bool:
        """Explicit flag for mix-bus volumes, derived from the value otherwise."""
        if self.definition.type is ParameterType.MIXVOL:
            return self.is_muted
        return self.current_value == self.definition.min

    def state_dict(self) -> Dict[str, Any]:
        return {
            "currentValue": self.current_value,
            "preMuteValue": self.pre_mute_value,
            "isMuted": self.is_muted,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.definition.to_dict()
        data.update(self.state_dict())
        return data


class _ParameterState:
    __slots__ = ("definition", "current_value", "pre_mute_value", "is_muted", "lock")

    def __init__(self, definition: ParameterDef):
        self.definition = definition
        self.current_value = definition.default
        self.pre_mute_value = definition.default
        self.is_muted = False
        self.lock = threading.RLock()

    def view(self) -> Parameter:
        return Parameter(self.definition, self.current_value, self.pre_mute_value, self.is_muted)


_FIELD_NAMES = {
    "current_value": "current_value",
    "currentValue": "current_value",
    "pre_mute_value": "pre_mute_value",
    "preMuteValue": "pre_mute_value",
    "is_muted": "is_muted",
    "isMuted": "is_muted",
}


def _finite_float(raw: Any) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _clamp(value: float, definition: ParameterDef) -> float:
    return max(definition.min, min(definition.max, value))


class CommandStateStore:
    """
    Single owner of all parameter state.

    Args:
        catalog: The loaded command catalog.
        state_path: Where snapshots are written; ``None`` disables persistence.
        debounce_sec: Idle time after the last change before a snapshot is written.
    """

    def __init__(self, catalog: CommandCatalog, state_path: Optional[str] = None,
                 debounce_sec: float = SAVE_DEBOUNCE_SEC):
        self.logger = get_logger(__name__)
        self.catalog = catalog
        self.state_path = state_path

        self._states: Dict[ParameterKey, _ParameterState] = {}
        self._by_address: Dict[Tuple[int, int], _ParameterState] = {}
        self._by_mute_address: Dict[Tuple[int, int], _ParameterState] = {}
        self._by_protocol_id: Dict[int, List[_ParameterState]] = {}

        for definition in catalog:
            state = _ParameterState(definition)
            self._states[definition.key] = state
            self._by_protocol_id.setdefault(definition.protocol_id, []).append(state)
            for index in definition.indices:
                # a shared address belongs to its mono parameter, else to the first listed
                address = (definition.protocol_id, index)
                owner = self._by_address.get(address)
                if owner is None or (definition.is_mono and not owner.definition.is_mono):
                    self._by_address[address] = state
            if definition.mute_protocol_id is not None:
                for mute_index in definition.mute_indices:
                    self._by_mute_address.setdefault((definition.mute_protocol_id, mute_index), state)

        self._active_device = ActiveOutputDevice.MONITORING
        self._device_lock = threading.RLock()
        self._save_timer = DebouncedTimer(debounce_sec, self._write_snapshot, name="StateSaveTimer")

    # --- Lookup ---

    def get(self, category: str, operation: str) -> Optional[Parameter]:
        state = self._states.get((category, operation))
        if state is None:
            return None
        with state.lock:
            return state.view()

    def get_by_protocol_address(self, protocol_id: int, index: int) -> Optional[Parameter]:
        state = self._by_address.get((protocol_id, index))
        if state is None:
            return None
        with state.lock:
            return state.view()

    def get_by_mute_address(self, mute_id: int, mute_index: int) -> Optional[ParameterKey]:
        state = self._by_mute_address.get((mute_id, mute_index))
        return state.definition.key if state is not None else None

    def parameters(self) -> Iterator[Parameter]:
        for definition in self.catalog:
            yield self.get(*definition.key)

    @contextmanager
    def locked(self, *keys: ParameterKey) -> Iterator[None]:
        """Hold the locks of the given parameters, acquired in a stable order."""
        states = [self._states[k] for k in sorted(set(keys)) if k in self._states]
        for state in states:
            state.lock.acquire()
        try:
            yield
        finally:
            for state in reversed(states):
                state.lock.release()

    # --- Mutation ---

    def update(self, category: str, operation: str, **fields: Any) -> Optional[Parameter]:
        """Merge fields into a parameter and schedule a debounced save."""
        state = self._states.get((category, operation))
        if state is None:
            self.logger.error(f"Attempted to update non-existent command: {category}/{operation}")
            return None

        with state.lock:
            for name, value in fields.items():
                attr = _FIELD_NAMES.get(name)
                if attr is None:
                    raise TypeError(f"Unknown parameter field: {name}")
                setattr(state, attr, bool(value) if attr == "is_muted" else value)
            view = state.view()
        self.schedule_save()
        return view

    def propagate_mono(self, category: str, operation: str, new_value: float) -> List[ParameterKey]:
        """
        Mirror a mono parameter's value onto stereo parameters with the same id that
        include its index. Only ``current_value`` changes; no further propagation.
        """
        source = self._states.get((category, operation))
        if source is None:
            self.logger.error(f"Attempted to propagate non-existent command: {category}/{operation}")
            return []
        if not source.definition.is_mono:
            return []

        mono_index = source.definition.indices[0]
        updated: List[ParameterKey] = []
        for target in self._by_protocol_id.get(source.definition.protocol_id, []):
            if target is source:
                continue
            if target.definition.is_stereo and mono_index in target.definition.indices:
                self.update(*target.definition.key, current_value=new_value)
                updated.append(target.definition.key)
        return updated

    # --- Active output device ---

    @property
    def active_output_device(self) -> ActiveOutputDevice:
        with self._device_lock:
            return self._active_device

    def set_active_output_device(self, device: ActiveOutputDevice) -> bool:
        parsed = device if isinstance(device, ActiveOutputDevice) else ActiveOutputDevice.parse(device)
        if parsed is None:
            self.logger.error(f"Attempted to set invalid active output device: {device}")
            return False
        with self._device_lock:
            if parsed is self._active_device:
                return True
            self._active_device = parsed
        self.schedule_save()
        return True

    # --- Snapshot ---

    def snapshot(self) -> Dict[str, Any]:
        commands: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for definition in self.catalog:
            state = self._states[definition.key]
            with state.lock:
                commands.setdefault(definition.category, {})[definition.operation] = state.view().state_dict()
        return {"activeOutputDevice": self.active_output_device.value, "commands": commands}

    def restore(self, snapshot: Any) -> int:
        """
        Seed state from a snapshot. Parameters missing from it keep their catalog
        defaults. Returns the number of parameters restored.
        """
        if not isinstance(snapshot, dict):
            raise ValueError("State snapshot must be an object")

        device = ActiveOutputDevice.parse(snapshot.get("activeOutputDevice"))
        if device is not None:
            with self._device_lock:
                self._active_device = device
            self.logger.info(f"Active output device restored: {device.value}")

        saved_commands = snapshot.get("commands", snapshot)
        if not isinstance(saved_commands, dict):
            raise ValueError("State snapshot 'commands' must be an object")

        restored = 0
        for definition in self.catalog:
            saved = self._find_saved_entry(saved_commands, definition)
            if saved is None:
                continue
            state = self._states[definition.key]
            with state.lock:
                is_muted = saved.get("isMuted", False)
                state.is_muted = is_muted if isinstance(is_muted, bool) else False
                current = _finite_float(saved.get("currentValue"))
                current = definition.default if current is None else _clamp(current, definition)
                state.current_value = current
                pre_mute = _finite_float(saved.get("preMuteValue"))
                # the catalog range may have changed since the snapshot was written
                state.pre_mute_value = current if pre_mute is None else _clamp(pre_mute, definition)
            restored += 1
        return restored

    @staticmethod
    def _find_saved_entry(saved_commands: Dict[str, Any], definition: ParameterDef) -> Optional[Dict[str, Any]]:
        nested = saved_commands.get(definition.category)
        if isinstance(nested, dict) and isinstance(nested.get(definition.operation), dict):
            return nested[definition.operation]
        # older flat formats: "category/operation", then bare operation name
        for legacy_key in (definition.composite_key, definition.operation):
            entry = saved_commands.get(legacy_key)
            if isinstance(entry, dict) and "currentValue" in entry:
                return entry
        return None

    def load_snapshot(self, path: Optional[str] = None) -> bool:
        """Restore from disk. A missing or malformed file is logged, never fatal."""
        path = path or self.state_path
        if not path:
            return False
        try:
            data = load_json(path)
        except FileNotFoundError:
            self.logger.info(f"No saved state at {path}, using catalog defaults")
            return False
        except (OSError, ValueError) as e:
            self.logger.error(f"Error loading state file. Continuing with default values: {e}")
            return False

        try:
            count = self.restore(data)
        except ValueError as e:
            self.logger.error(f"Error loading state file. Continuing with default values: {e}")
            return False
        self.logger.info(f"State successfully restored from {path} ({count} parameters)")
        return True

    # --- Persistence scheduling ---

    def schedule_save(self) -> None:
        if self.state_path:
            self._save_timer.trigger()

    def has_pending_save(self) -> bool:
        return self._save_timer.is_pending()

    def flush(self) -> None:
        """Cancel the pending save and write the snapshot now."""
        if self.state_path:
            self._save_timer.flush()

    def close(self) -> None:
        """Final flush; later updates no longer schedule saves."""
        if self.state_path:
            self._save_timer.close(flush=True)
        else:
            self._save_timer.close(flush=False)

    def _write_snapshot(self) -> None:
        if not self.state_path:
            return
        if save_json(self.state_path, self.snapshot()):
            self.logger.info(f"Current state saved to {self.state_path}")
        else:
            self.logger.error(f"Failed to save state to {self.state_path}")
