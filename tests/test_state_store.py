"""Tests for model/state_store.py.

Covers:
- lookup by logical key, protocol address and mute address
- update merging and the unknown-key contract
- derived vs explicit mute state
- mono -> stereo propagation
- snapshot / restore, legacy formats, defaults for missing entries
- debounced persistence and the final flush
"""

import json
import threading

import pytest

from model.catalog import CommandCatalog
from model.state_store import ActiveOutputDevice, CommandStateStore

# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


class TestLookup:
    def test_initial_values_are_catalog_defaults(self, store: CommandStateStore) -> None:
        monitoring = store.get("output", "monitoring")
        assert monitoring.current_value == -100.0
        assert monitoring.pre_mute_value == -100.0
        assert monitoring.is_muted is False

    def test_unknown_key(self, store: CommandStateStore) -> None:
        assert store.get("output", "nope") is None

    def test_protocol_address_for_each_index(self, store: CommandStateStore) -> None:
        assert store.get_by_protocol_address(8, 0).key == ("output", "monitoring")
        assert store.get_by_protocol_address(8, 1).key == ("output", "monitoring")
        assert store.get_by_protocol_address(8, 3).key == ("output", "phones")
        assert store.get_by_protocol_address(8, 9) is None

    def test_shared_address_prefers_mono_parameter(self, store: CommandStateStore) -> None:
        assert store.get_by_protocol_address(10, 0).key == ("input", "in1")
        assert store.get_by_protocol_address(10, 1).key == ("input", "in2")

    def test_mute_address(self, store: CommandStateStore) -> None:
        assert store.get_by_mute_address(73, 0) == ("bus", "mix1")
        assert store.get_by_mute_address(73, 3) == ("bus", "mix2")
        assert store.get_by_mute_address(72, 0) is None

    def test_returned_view_is_a_copy(self, store: CommandStateStore) -> None:
        before = store.get("input", "in1")
        store.update("input", "in1", current_value=12)
        assert before.current_value == 0.0
        assert store.get("input", "in1").current_value == 12


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_merges_only_given_fields(self, store: CommandStateStore) -> None:
        store.update("output", "monitoring", current_value=-20, pre_mute_value=-25)
        store.update("output", "monitoring", current_value=-10)
        p = store.get("output", "monitoring")
        assert (p.current_value, p.pre_mute_value) == (-10, -25)

    def test_accepts_wire_field_names(self, store: CommandStateStore) -> None:
        store.update("bus", "mix1", isMuted=True, currentValue=-6.0)
        p = store.get("bus", "mix1")
        assert p.is_muted is True
        assert p.current_value == -6.0

    def test_unknown_parameter_is_noop(self, store: CommandStateStore) -> None:
        assert store.update("bus", "missing", current_value=1) is None

    def test_unknown_field_is_programming_error(self, store: CommandStateStore) -> None:
        with pytest.raises(TypeError):
            store.update("bus", "mix1", volume=3)


class TestMuteDerivation:
    def test_trim_at_min_is_muted(self, store: CommandStateStore) -> None:
        store.update("input", "trim3", current_value=-100)
        assert store.get("input", "trim3").muted is True

    def test_trim_above_min_is_not_muted(self, store: CommandStateStore) -> None:
        store.update("input", "trim3", current_value=-99.5, is_muted=True)
        assert store.get("input", "trim3").muted is False

    def test_mixvol_uses_explicit_flag(self, store: CommandStateStore) -> None:
        store.update("bus", "mix1", current_value=-100)
        assert store.get("bus", "mix1").muted is False
        store.update("bus", "mix1", is_muted=True)
        assert store.get("bus", "mix1").muted is True


# ---------------------------------------------------------------------------
# Propagation
# ---------------------------------------------------------------------------


class TestPropagateMono:
    def test_mono_value_reaches_stereo_pair(self, store: CommandStateStore) -> None:
        store.update("input", "in1-2", is_muted=True)
        store.update("input", "in1", current_value=3)
        updated = store.propagate_mono("input", "in1", 3)
        assert updated == [("input", "in1-2")]
        pair = store.get("input", "in1-2")
        assert pair.current_value == 3
        assert pair.is_muted is True

    def test_other_mono_parameters_untouched(self, store: CommandStateStore) -> None:
        store.propagate_mono("input", "in1", 7)
        assert store.get("input", "in2").current_value == 0.0

    def test_stereo_source_does_not_propagate(self, store: CommandStateStore) -> None:
        assert store.propagate_mono("input", "in1-2", 9) == []
        assert store.get("input", "in1").current_value == 0.0

    def test_different_protocol_id_not_linked(self, store: CommandStateStore) -> None:
        store.propagate_mono("input", "trim3", -5)
        assert store.get("input", "in1-2").current_value == 0.0

    def test_unknown_source(self, store: CommandStateStore) -> None:
        assert store.propagate_mono("input", "missing", 1) == []


# ---------------------------------------------------------------------------
# Active output device
# ---------------------------------------------------------------------------


class TestActiveOutputDevice:
    def test_defaults_to_monitoring(self, store: CommandStateStore) -> None:
        assert store.active_output_device is ActiveOutputDevice.MONITORING

    def test_set_by_value(self, store: CommandStateStore) -> None:
        assert store.set_active_output_device("Phones") is True
        assert store.active_output_device is ActiveOutputDevice.PHONES

    def test_invalid_device_rejected(self, store: CommandStateStore) -> None:
        assert store.set_active_output_device("Speakers") is False
        assert store.active_output_device is ActiveOutputDevice.MONITORING


# ---------------------------------------------------------------------------
# Snapshot / restore
# ---------------------------------------------------------------------------


class TestSnapshot:
    def test_snapshot_shape(self, store: CommandStateStore) -> None:
        store.update("bus", "mix1", current_value=-6.0, pre_mute_value=-6.0, is_muted=True)
        store.set_active_output_device(ActiveOutputDevice.PHONES)
        snap = store.snapshot()
        assert snap["activeOutputDevice"] == "Phones"
        assert snap["commands"]["bus"]["mix1"] == {"currentValue": -6.0, "preMuteValue": -6.0, "isMuted": True}
        assert set(snap["commands"]) == {"output", "input", "bus", "ui"}

    def test_restore_round_trip(self, store: CommandStateStore, catalog: CommandCatalog) -> None:
        store.update("output", "monitoring", current_value=-20, pre_mute_value=-30)
        store.set_active_output_device("Phones")
        other = CommandStateStore(catalog)
        assert other.restore(store.snapshot()) == len(catalog)
        assert other.snapshot() == store.snapshot()

    def test_missing_entries_keep_defaults(self, store: CommandStateStore) -> None:
        store.restore({"commands": {"input": {"in1": {"currentValue": 12, "preMuteValue": 12, "isMuted": False}}}})
        assert store.get("input", "in1").current_value == 12
        assert store.get("input", "in2").current_value == 0.0

    def test_invalid_numbers_fall_back(self, store: CommandStateStore) -> None:
        store.restore({"commands": {"input": {"in1": {"currentValue": "loud", "preMuteValue": None}}}})
        p = store.get("input", "in1")
        assert p.current_value == 0.0
        assert p.pre_mute_value == 0.0

    def test_out_of_range_values_are_clamped(self, store: CommandStateStore) -> None:
        store.restore({"commands": {"output": {"monitoring": {"currentValue": 50, "preMuteValue": 75}}}})
        monitoring = store.get("output", "monitoring")
        assert (monitoring.current_value, monitoring.pre_mute_value) == (0.0, 0.0)

        store.restore({"commands": {"input": {"in1": {"currentValue": -20, "preMuteValue": 99}}}})
        in1 = store.get("input", "in1")
        assert (in1.current_value, in1.pre_mute_value) == (0.0, 60.0)

    @pytest.mark.parametrize("raw", ["false", "true", 1, None])
    def test_non_boolean_mute_flag_is_unmuted(self, store: CommandStateStore, raw) -> None:
        store.restore({"commands": {"bus": {"mix1": {"currentValue": -6, "isMuted": raw}}}})
        assert store.get("bus", "mix1").is_muted is False

    def test_pre_mute_defaults_to_current(self, store: CommandStateStore) -> None:
        store.restore({"commands": {"input": {"in1": {"currentValue": 30}}}})
        assert store.get("input", "in1").pre_mute_value == 30

    def test_legacy_composite_keys(self, store: CommandStateStore) -> None:
        store.restore({"commands": {"output/phones": {"currentValue": -12, "preMuteValue": -12, "isMuted": False}}})
        assert store.get("output", "phones").current_value == -12

    def test_legacy_bare_operation_keys(self, store: CommandStateStore) -> None:
        store.restore({"pad1": {"currentValue": 1, "preMuteValue": 1, "isMuted": False}})
        assert store.get("input", "pad1").current_value == 1

    def test_invalid_device_ignored(self, store: CommandStateStore) -> None:
        store.restore({"activeOutputDevice": "Speakers", "commands": {}})
        assert store.active_output_device is ActiveOutputDevice.MONITORING

    def test_non_object_rejected(self, store: CommandStateStore) -> None:
        with pytest.raises(ValueError):
            store.restore(["nope"])


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    def test_update_schedules_save_without_writing(self, catalog: CommandCatalog, tmp_path) -> None:
        path = tmp_path / "state.json"
        s = CommandStateStore(catalog, state_path=str(path), debounce_sec=10)
        s.update("input", "in1", current_value=5)
        assert s.has_pending_save() is True
        assert not path.exists()
        s.close()

    def test_flush_writes_snapshot(self, catalog: CommandCatalog, tmp_path) -> None:
        path = tmp_path / "state.json"
        s = CommandStateStore(catalog, state_path=str(path), debounce_sec=10)
        s.update("input", "in1", current_value=5)
        s.flush()
        assert s.has_pending_save() is False
        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["commands"]["input"]["in1"]["currentValue"] == 5
        s.close()

    def test_debounced_write_happens_after_quiet_period(self, catalog: CommandCatalog, tmp_path) -> None:
        path = tmp_path / "state.json"
        written = threading.Event()
        s = CommandStateStore(catalog, state_path=str(path), debounce_sec=0.05)
        original = s._write_snapshot

        def _write() -> None:
            original()
            written.set()

        s._save_timer._callback = _write
        s.update("input", "in1", current_value=5)
        s.update("input", "in1", current_value=6)
        assert written.wait(timeout=2.0)
        assert json.loads(path.read_text(encoding="utf-8"))["commands"]["input"]["in1"]["currentValue"] == 6
        s.close()

    def test_close_flushes_and_stops_scheduling(self, catalog: CommandCatalog, tmp_path) -> None:
        path = tmp_path / "state.json"
        s = CommandStateStore(catalog, state_path=str(path), debounce_sec=10)
        s.update("input", "in1", current_value=5)
        s.close()
        assert path.exists()
        s.update("input", "in1", current_value=6)
        assert s.has_pending_save() is False

    def test_load_snapshot_from_disk(self, catalog: CommandCatalog, tmp_path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps({
            "activeOutputDevice": "Phones",
            "commands": {"bus": {"mix1": {"currentValue": -6.0, "preMuteValue": -6.0, "isMuted": True}}},
        }), encoding="utf-8")
        s = CommandStateStore(catalog, state_path=str(path))
        assert s.load_snapshot() is True
        assert s.active_output_device is ActiveOutputDevice.PHONES
        assert s.get("bus", "mix1").is_muted is True
        s.close()

    def test_missing_snapshot_uses_defaults(self, catalog: CommandCatalog, tmp_path) -> None:
        s = CommandStateStore(catalog, state_path=str(tmp_path / "none.json"))
        assert s.load_snapshot() is False
        assert s.get("input", "in1").current_value == 0.0
        s.close()

    def test_malformed_snapshot_is_not_fatal(self, catalog: CommandCatalog, tmp_path) -> None:
        path = tmp_path / "state.json"
        path.write_text("[[[", encoding="utf-8")
        s = CommandStateStore(catalog, state_path=str(path))
        assert s.load_snapshot() is False
        assert s.get("input", "in1").current_value == 0.0
        s.close()

    def test_write_failure_keeps_running(self, catalog: CommandCatalog, tmp_path) -> None:
        s = CommandStateStore(catalog, state_path=str(tmp_path / "missing_dir" / "state.json"), debounce_sec=10)
        s.update("input", "in1", current_value=5)
        s.flush()
        assert s.get("input", "in1").current_value == 5
        s.close()
