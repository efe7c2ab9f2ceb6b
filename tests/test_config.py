import json

import pytest
from pydantic import ValidationError

from gambit.config import (
    IN_MEMORY_DATABASE,
    AppConfig,
    MachineConfig,
    PathsConfig,
    load_config,
)


def test_machine_defaults():
    machine = MachineConfig()
    assert (machine.blocks_to_act, machine.cost_to_spin, machine.cost_to_respin) == (
        20,
        100_000,
        70_000,
    )


@pytest.mark.parametrize(
    "values",
    [
        {"blocks_to_act": 0},
        {"cost_to_respin": 100_001},
        {"cost_to_spin": -1, "cost_to_respin": -1},
    ],
)
def test_machine_validation(values):
    with pytest.raises(ValidationError):
        MachineConfig(**values)


def test_load_config_file_with_env_override(tmp_path, monkeypatch):
    config_file = tmp_path / "config.json"
    config_file.write_text(
        json.dumps({"machine": {"blocks_to_act": 5, "cost_to_spin": 10, "cost_to_respin": 7}})
    )
    monkeypatch.setenv("COST_TO_SPIN", "20")

    config = load_config(config_file)

    assert config.machine.blocks_to_act == 5
    assert config.machine.cost_to_spin == 20
    assert config.machine.cost_to_respin == 7


def test_missing_config_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("COST_TO_SPIN", raising=False)
    config = load_config(tmp_path / "absent.json")
    assert config.machine.cost_to_spin == 100_000
    assert config.paths.get_db_path() == IN_MEMORY_DATABASE


def test_payout_multipliers_in_config():
    config = AppConfig(payouts={"minor_triple": 40})
    assert config.payouts.minor_triple == 40
    assert config.payouts.major_distinct == 100


def test_db_path_is_project_relative():
    path = PathsConfig(database="data/test.db").get_db_path()
    assert path.parts[-2:] == ("data", "test.db")
