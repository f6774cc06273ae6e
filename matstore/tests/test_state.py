"""
Tests for the active configuration state.

Validates:
- Selection and lazy default bags
- Single and batch writes (first-failure-atomic)
- Clamp warnings
- Merge of partial bags
- Snapshot export/restore
- Dirty tracking by write generation
"""

import pytest

from matstore.errors import InvalidPropertyValueError, UnknownPropertyError, UnknownTargetError
from matstore.schema import GLASS_CHIP_DEFAULTS, GLOWING_BUTTON_DEFAULTS
from matstore.state import MAX_CLAMP_WARNINGS, ActiveConfiguration


class TestSelection:
    """Test addressing."""

    def test_initial_selection_has_defaults(self, state):
        assert state.selection == ("glassChip", None)
        assert state.get() == GLASS_CHIP_DEFAULTS

    def test_select_layered_target_defaults_to_first_layer(self, state):
        assert state.select("glowingButton") == ("glowingButton", "outerShell")
        assert state.get() == GLOWING_BUTTON_DEFAULTS["outerShell"]

    def test_select_unknown_target(self, state):
        with pytest.raises(UnknownTargetError):
            state.select("sphere")
        assert state.selection == ("glassChip", None)

    def test_select_unknown_layer(self, state):
        with pytest.raises(UnknownTargetError):
            state.select("glowingButton", "halo")

    def test_explicit_address_does_not_change_selection(self, state):
        state.set("emissiveIntensity", 2.0, target_id="glowingButton", layer_id="innerCore")
        assert state.selection == ("glassChip", None)
        assert state.get("emissiveIntensity", target_id="glowingButton", layer_id="innerCore") == 2.0

    def test_selected_layer_used_for_implicit_reads(self, state):
        state.select("glowingButton", "innermostSpark")
        assert state.get("emissiveIntensity") == GLOWING_BUTTON_DEFAULTS["innermostSpark"]["emissiveIntensity"]


class TestWrites:
    """Test set, set_many and reset."""

    def test_set_and_get(self, state):
        assert state.set("color", "#FF0000") == "#FF0000"
        assert state.get("color") == "#FF0000"
        assert state.dirty

    def test_get_returns_copy(self, state):
        bag = state.get()
        bag["roughness"] = 0.99
        assert state.get("roughness") == GLASS_CHIP_DEFAULTS["roughness"]

    def test_unknown_key_fails(self, state):
        with pytest.raises(UnknownPropertyError):
            state.set("glowStrength", 1.0)
        with pytest.raises(UnknownPropertyError):
            state.get("glowStrength")

    def test_layer_specific_keys(self, state):
        with pytest.raises(UnknownPropertyError):
            state.set("clearcoat", 0.5, target_id="glowingButton", layer_id="innerCore")

    def test_roughness_clamped_with_warning(self, state):
        assert state.set("roughness", 1.4) == 1.0
        assert state.get("roughness") == 1.0

        assert len(state.clamp_warnings) == 1
        warning = state.clamp_warnings[0]
        assert warning.key == "roughness"
        assert warning.requested == 1.4
        assert warning.applied == 1.0
        assert warning.target_id == "glassChip"

    def test_set_many_atomic_on_unknown_key(self, state):
        before = state.get()
        with pytest.raises(UnknownPropertyError):
            state.set_many({"roughness": 0.1, "bogus": 1, "opacity": 0.2})
        assert state.get() == before
        assert not state.dirty

    def test_set_many_atomic_on_invalid_value(self, state):
        before = state.get()
        with pytest.raises(InvalidPropertyValueError):
            state.set_many({"roughness": 0.1, "color": "red"})
        assert state.get() == before

    def test_set_many_clamps_individually(self, state):
        applied = state.set_many({"roughness": 1.4, "opacity": 0.5, "ior": 0.1})
        assert applied == {"roughness": 1.0, "opacity": 0.5, "ior": 1.0}
        assert [w.key for w in state.clamp_warnings] == ["roughness", "ior"]

    def test_reset(self, state):
        state.set("roughness", 0.1)
        assert state.reset() == GLASS_CHIP_DEFAULTS
        assert state.get() == GLASS_CHIP_DEFAULTS

    def test_on_change_called_with_address(self, schema):
        calls = []
        state = ActiveConfiguration(schema, on_change=lambda t, l: calls.append((t, l)))
        state.set("opacity", 0.4, target_id="glowingButton", layer_id="innerCore")
        assert calls == [("glowingButton", "innerCore")]

    def test_failed_write_does_not_notify(self, schema):
        calls = []
        state = ActiveConfiguration(schema, on_change=lambda t, l: calls.append((t, l)))
        with pytest.raises(UnknownPropertyError):
            state.set("bogus", 1)
        assert calls == []


class TestMerge:
    """Test merging partial bags."""

    def test_merge_keeps_unset_keys(self, state):
        state.set("sheen", 0.9)
        applied, skipped, clamped = state.merge({"roughness": 0.2, "color": "#123456"})
        assert applied == {"roughness": 0.2, "color": "#123456"}
        assert skipped == []
        assert clamped == []
        assert state.get("sheen") == 0.9

    def test_merge_skips_unrecognized_keys(self, state):
        applied, skipped, _ = state.merge(
            {"clearcoat": 0.3, "pattern": "grid"},
            target_id="glowingButton",
            layer_id="innerCore",
        )
        assert applied == {}
        assert sorted(skipped) == ["clearcoat", "pattern"]

    def test_merge_reports_clamped(self, state):
        _, _, clamped = state.merge({"emissiveIntensity": 9.0})
        assert clamped == ["emissiveIntensity"]
        assert state.get("emissiveIntensity") == 5.0


class TestSnapshotSupport:
    """Test export and restore."""

    def test_to_snapshot_uses_default_layer_key(self, state):
        state.set("opacity", 0.5, target_id="glowingButton", layer_id="innerCore")
        tree = state.to_snapshot()
        assert tree["glassChip"]["default"] == GLASS_CHIP_DEFAULTS
        assert tree["glowingButton"]["innerCore"]["opacity"] == 0.5

    def test_restore_round_trip(self, schema, state):
        state.set("roughness", 0.12)
        state.set("color", "#00FF00", target_id="glowingButton", layer_id="outerShell")

        restored = ActiveConfiguration(schema)
        assert restored.restore(state.to_snapshot()) == 2
        assert restored.to_snapshot() == state.to_snapshot()
        assert not restored.dirty

    def test_restore_sanitizes(self, schema):
        restored = ActiveConfiguration(schema)
        count = restored.restore({
            "glassChip": {"default": {"roughness": 3.0, "color": "nope", "bogus": 1}},
            "sphere": {"default": {"roughness": 0.1}},
            "glowingButton": {"halo": {"opacity": 0.1}},
        })
        assert count == 1
        assert restored.get("roughness") == 1.0
        assert restored.get("color") == GLASS_CHIP_DEFAULTS["color"]
        assert "bogus" not in restored.get()


class TestDirtyTracking:
    """Test generation-based dirty tracking."""

    def test_saving_older_snapshot_keeps_dirty(self, state):
        state.set("roughness", 0.2)
        taken_at = state.generation
        state.set("roughness", 0.3)

        # A snapshot built before the second write finishes saving
        state.mark_clean(taken_at)
        assert state.dirty

        state.mark_clean(state.generation)
        assert not state.dirty

    def test_mark_clean_never_moves_backwards(self, state):
        state.set("roughness", 0.2)
        state.mark_clean()
        state.mark_clean(0)
        assert not state.dirty

    def test_failed_write_does_not_bump_generation(self, state):
        with pytest.raises(UnknownPropertyError):
            state.set("bogus", 1)
        assert state.generation == 0
        assert not state.dirty


class TestClampWarnings:
    """Test clamp warning bookkeeping."""

    def test_warnings_capped(self, state):
        for _ in range(MAX_CLAMP_WARNINGS + 5):
            state.set("roughness", 2.0)
        assert len(state.clamp_warnings) == MAX_CLAMP_WARNINGS

    def test_drain(self, state):
        state.set("roughness", 2.0)
        drained = state.drain_clamp_warnings()
        assert [w.key for w in drained] == ["roughness"]
        assert len(state.clamp_warnings) == 0
