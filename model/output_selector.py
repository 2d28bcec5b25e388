"""
Active output selector for the single-fader "listening" control surface.
"""
from typing import Optional, Tuple

from model.catalog import ParameterKey
from model.events import Publisher, active_device_changed
from model.state_store import ActiveOutputDevice, CommandStateStore
from utils.logger import get_logger

OUTPUT_CATEGORY: str = "output"


def output_key(device: ActiveOutputDevice) -> ParameterKey:
    return (OUTPUT_CATEGORY, device.operation)


class ActiveOutputSelector:
    """
    Two-state machine (Monitoring / Phones). Switching parks the old output at its
    minimum and brings the new one back from its pre-mute value.
    """

    def __init__(self, store: CommandStateStore, publish: Publisher):
        self.logger = get_logger(__name__)
        self.store = store
        self.publish = publish

    @property
    def active_device(self) -> ActiveOutputDevice:
        return self.store.active_output_device

    def active_key(self) -> ParameterKey:
        return output_key(self.active_device)

    def toggle(self) -> Optional[Tuple[ParameterKey, ParameterKey]]:
        """
        Switch the listening target.

        Returns ``(old_key, new_key)`` in the order their frames must be sent, or
        None when an output parameter is missing from the catalog.
        """
        old_device = self.active_device
        new_device = old_device.other()
        old_key, new_key = output_key(old_device), output_key(new_device)

        with self.store.locked(old_key, new_key):
            old = self.store.get(*old_key)
            new = self.store.get(*new_key)
            if old is None or new is None:
                missing = old_key if old is None else new_key
                self.logger.error(f"Output parameter missing from catalog: {missing[0]}/{missing[1]}")
                return None

            if old.current_value != old.min:
                self.store.update(*old_key, pre_mute_value=old.current_value, current_value=old.min)
            if new.current_value == new.min:
                self.store.update(*new_key, current_value=new.pre_mute_value)
            self.store.set_active_output_device(new_device)

        self.logger.info(f"Active output device: {old_device.value} -> {new_device.value}")
        self.publish(active_device_changed(new_device))
        return old_key, new_key
