"""
Binary frame encoding and decoding for the device protocol.

Outbound frame, repeated once per target index and sent as one payload:

    [id u16][index u16][length u16][value, length bytes]   (big-endian, hex encoded)

Inbound frame:

    [id u16][index u16][value, remaining bytes]
"""
import binascii
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from model.catalog import ParameterDef, ParameterKey, ParameterType
from model.converters import db_to_hex, hex_to_db, round_half_up
from model.events import Publisher, single_update
from model.state_store import CommandStateStore
from utils.logger import get_logger

LOCAL_ONLY_PROTOCOL_ID: int = 0
MIXVOL_VALUE_LENGTH: int = 4
DEFAULT_VALUE_LENGTH: int = 1
MUTE_VALUE_LENGTH: int = 1
MIN_INBOUND_HEX_LENGTH: int = 8


def to_raw_value(param_type: ParameterType, value: float) -> float:
    """Logical (UI) value -> device value."""
    if param_type is ParameterType.MIXVOL:
        return db_to_hex(value)
    if param_type is ParameterType.TRIM:
        # stored by the device as a positive attenuation
        return -value
    return value


def from_raw_value(param_type: ParameterType, raw: int) -> float:
    """Device value -> logical (UI) value."""
    if param_type is ParameterType.MIXVOL:
        return hex_to_db(raw)
    if param_type is ParameterType.TRIM:
        return -raw
    return raw


def value_length(param_type: ParameterType) -> int:
    return MIXVOL_VALUE_LENGTH if param_type is ParameterType.MIXVOL else DEFAULT_VALUE_LENGTH


def create_frame(protocol_id: int, index: int, value: float, length: int = DEFAULT_VALUE_LENGTH) -> str:
    safe_value = max(0, round_half_up(value))
    return f"{protocol_id:04x}{index:04x}{length:04x}{safe_value:0{length * 2}x}"


def create_payload(protocol_id: int, indices: Sequence[int], value: float, length: int) -> str:
    return "".join(create_frame(protocol_id, index, value, length) for index in indices)


@dataclass(frozen=True)
class OutboundCommand:
    key: ParameterKey
    display_name: str
    logical_value: float
    raw_value: float
    payload_hex: str


def encode_update(definition: ParameterDef, value: float) -> Optional[OutboundCommand]:
    """Encode a value write. UI-local parameters (id 0) produce nothing."""
    if definition.protocol_id == LOCAL_ONLY_PROTOCOL_ID or not definition.indices:
        return None
    raw = to_raw_value(definition.type, value)
    payload = create_payload(definition.protocol_id, definition.indices, raw, value_length(definition.type))
    return OutboundCommand(definition.key, definition.display_name, value, raw, payload)


def encode_mute(definition: ParameterDef, muted: bool) -> Optional[OutboundCommand]:
    """Encode a write to the dedicated mute address (mix-bus volumes)."""
    if not definition.mute_protocol_id or not definition.mute_indices:
        return None
    value = 1 if muted else 0
    payload = create_payload(definition.mute_protocol_id, definition.mute_indices, value, MUTE_VALUE_LENGTH)
    return OutboundCommand(definition.key, definition.display_name, value, value, payload)


@dataclass(frozen=True)
class InboundFrame:
    protocol_id: int
    index: int
    raw_value: int
    hex: str


def parse_frame(data: Union[bytes, bytearray, str]) -> Optional[InboundFrame]:
    """Split an inbound frame. Returns None for anything malformed."""
    if isinstance(data, (bytes, bytearray)):
        received_hex = binascii.hexlify(bytes(data)).decode("ascii")
    else:
        received_hex = data.strip().lower()

    # frames without a value part are treated as malformed as well
    if len(received_hex) <= MIN_INBOUND_HEX_LENGTH:
        return None
    try:
        protocol_id = int(received_hex[0:4], 16)
        index = int(received_hex[4:8], 16)
        raw_value = int(received_hex[8:], 16)
    except ValueError:
        return None
    return InboundFrame(protocol_id, index, raw_value, received_hex)


class FrameDecoder:
    """Applies inbound device frames to the state store and publishes the changes."""

    def __init__(self, store: CommandStateStore, publish: Publisher):
        self.logger = get_logger(__name__)
        self.store = store
        self.publish = publish

    def handle_frame(self, data: Union[bytes, bytearray, str]) -> Optional[ParameterKey]:
        """Returns the key of the updated parameter, or None if the frame was ignored."""
        frame = parse_frame(data)
        if frame is None:
            return None

        mute_key = self.store.get_by_mute_address(frame.protocol_id, frame.index)
        if mute_key is not None:
            return self._apply_mute(mute_key, frame)

        parameter = self.store.get_by_protocol_address(frame.protocol_id, frame.index)
        if parameter is None:
            return None

        definition = parameter.definition
        if definition.is_stereo and frame.index != definition.indices[0]:
            # second channel of a stereo pair, already handled through the first
            return None

        ui_value = from_raw_value(definition.type, frame.raw_value)
        with self.store.locked(definition.key):
            self.store.update(*definition.key, current_value=ui_value)
            self.store.propagate_mono(*definition.key, ui_value)
            updated = self.store.get(*definition.key)
        self.logger.info(f"State updated from device   : {definition.display_name} = {ui_value}({frame.hex})")
        self.publish(single_update(updated))
        return definition.key

    def _apply_mute(self, key: ParameterKey, frame: InboundFrame) -> ParameterKey:
        is_muted = frame.raw_value == 1
        updated = self.store.update(*key, is_muted=is_muted)
        self.logger.info(
            f"Mute state updated from device: {updated.definition.display_name} = "
            f"{'Muted' if is_muted else 'Unmuted'}({frame.hex})"
        )
        self.publish(single_update(updated))
        return key
