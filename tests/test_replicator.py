import pytest

from models import RegValue, ValueKind
from registry import HKCU, MemoryRegistry
from replicator import ConfigReplicator, SourceNotFoundError, TargetCreateError, TargetNotFoundError

OPTIONS = "Software\\WDS LLC\\{}\\Options"


def _registry() -> MemoryRegistry:
    reg = MemoryRegistry()
    reg.add_key(
        HKCU,
        OPTIONS.format("gameA"),
        {
            "Sound": 1,
            "Player": "Allied",
            "Window": RegValue.binary(b"\x00\x10"),
            "SavePath": RegValue.expandable("%USERPROFILE%\\Saves"),
        },
    )
    reg.add_key(HKCU, OPTIONS.format("gameB"), {"Sound": 0})
    return reg


def test_copy_into_existing_key_only_touches_known_names() -> None:
    reg = _registry()
    written = ConfigReplicator(reg).copy_options("gameA", "gameB")
    assert written == 1
    values = reg.values(HKCU, OPTIONS.format("gameB"))
    assert values["Sound"].data == 1
    assert set(values) == {"Sound"}


def test_copy_creates_key_and_preserves_kinds() -> None:
    reg = _registry()
    written = ConfigReplicator(reg).copy_options("gameA", "gameC", require_existing_key=False)
    assert written == 4
    values = reg.values(HKCU, OPTIONS.format("gameC"))
    assert values == reg.values(HKCU, OPTIONS.format("gameA"))
    assert values["Window"].kind is ValueKind.BINARY
    assert values["SavePath"].kind is ValueKind.EXPAND_SZ


def test_missing_source_and_target() -> None:
    reg = _registry()
    replicator = ConfigReplicator(reg)
    with pytest.raises(SourceNotFoundError) as excinfo:
        replicator.copy_options("ghost", "gameB")
    assert excinfo.value.app_name == "ghost"
    with pytest.raises(TargetNotFoundError):
        replicator.copy_options("gameA", "gameC")
    assert not reg.key_exists(HKCU, OPTIONS.format("gameC"))


def test_target_create_failure() -> None:
    reg = _registry()
    reg.deny_writes(HKCU, "Software\\WDS LLC\\gameC")
    with pytest.raises(TargetCreateError):
        ConfigReplicator(reg).copy_options("gameA", "gameC", require_existing_key=False)


def test_fan_out_reports_each_target() -> None:
    reg = _registry()
    reg.deny_writes(HKCU, "Software\\WDS LLC\\gameC")
    calls = []
    report = ConfigReplicator(reg).copy_options_to_many(
        "gameA",
        ["gameB", "gameC"],
        progress=lambda target, index, total: calls.append((target, index, total)),
    )
    assert report.success_count == 1
    assert report.failure_count == 1
    assert report.failed_targets == ["gameC"]
    assert calls == [("gameB", 1, 2), ("gameC", 2, 2)]
    assert reg.values(HKCU, OPTIONS.format("gameB")) == reg.values(HKCU, OPTIONS.format("gameA"))
    assert [outcome.target_name for outcome in report.outcomes] == ["gameB", "gameC"]


def test_source_in_target_list_is_skipped_and_untouched() -> None:
    reg = _registry()
    before = reg.values(HKCU, OPTIONS.format("gameA"))
    report = ConfigReplicator(reg).copy_options_to_many("gameA", ["GAMEA", "gameB"])
    assert report.outcomes[0].skipped
    assert report.success_count == 1
    assert report.failure_count == 0
    assert reg.values(HKCU, OPTIONS.format("gameA")) == before


def test_failed_source_fails_every_target() -> None:
    report = ConfigReplicator(_registry()).copy_options_to_many("ghost", ["gameA", "gameB"])
    assert report.failed_targets == ["gameA", "gameB"]
    assert "Source application not found" in report.outcomes[0].error


def test_list_option_apps() -> None:
    reg = _registry()
    reg.add_key(HKCU, "Software\\WDS LLC\\NoOptions")
    assert sorted(ConfigReplicator(reg).list_option_apps()) == ["gameA", "gameB"]
    assert ConfigReplicator(MemoryRegistry()).list_option_apps() == []


def test_fan_out_can_keep_to_known_names() -> None:
    reg = _registry()
    report = ConfigReplicator(reg).copy_options_to_many("gameA", ["gameB", "gameC"], require_existing_key=True)
    assert report.failed_targets == ["gameC"]
    assert set(reg.values(HKCU, OPTIONS.format("gameB"))) == {"Sound"}
    assert not reg.key_exists(HKCU, OPTIONS.format("gameC"))


class _BadDataRegistry(MemoryRegistry):
    bad_path = ""

    def write_value(self, hive, path, name, value) -> None:
        if path.casefold() == self.bad_path:
            raise ValueError("Could not convert the data to the specified type.")
        super().write_value(hive, path, name, value)


def test_unexpected_store_error_becomes_outcome() -> None:
    reg = _BadDataRegistry()
    reg.add_key(HKCU, OPTIONS.format("gameA"), {"Sound": 1, "Player": "Allied"})
    reg.add_key(HKCU, OPTIONS.format("gameB"), {"Sound": 0})
    reg.add_key(HKCU, OPTIONS.format("gameC"), {"Sound": 0})
    reg.bad_path = OPTIONS.format("gameB").casefold()
    calls = []
    report = ConfigReplicator(reg).copy_options_to_many(
        "gameA", ["gameB", "gameC"], progress=lambda *args: calls.append(args)
    )
    assert report.failed_targets == ["gameB"]
    assert "Could not convert" in report.outcomes[0].error
    assert report.success_count == 1
    assert calls == [("gameB", 1, 2), ("gameC", 2, 2)]
    assert set(reg.values(HKCU, OPTIONS.format("gameC"))) == {"Sound", "Player"}
