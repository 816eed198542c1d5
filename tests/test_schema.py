import pytest
from pydantic import ValidationError

from user.configuration import config as user_config
from utils.schema import (
    Config,
    GeneralConfig,
    KnoConfig,
    load_config_with_restricted_cli,
    parse_binning,
)


def test_user_configuration_is_valid():
    """The shipped configuration passes validation."""
    config = Config(**user_config)
    assert config.general.analysis == "all"
    assert config["kno"]["lead_pt_min"] == 5.0
    assert len(config.resonance.functions) == 4
    assert "cdmeson" in config


def test_general_config_checks():
    with pytest.raises(ValidationError):
        GeneralConfig(step_size=0)
    with pytest.raises(ValidationError):
        GeneralConfig(max_files=-5)
    with pytest.raises(ValidationError):
        GeneralConfig(analysis="jets")


def test_kno_config_checks():
    """Empty leading-pT windows and inconsistent closure settings are refused."""
    with pytest.raises(ValidationError):
        KnoConfig(lead_pt_min=10.0, lead_pt_max=5.0)
    with pytest.raises(ValidationError):
        KnoConfig(mc_closure=True)
    with pytest.raises(ValidationError):
        KnoConfig(use_mc=True, closure_fraction=1.0)
    assert KnoConfig(use_mc=True, mc_closure=True).closure_fraction == 0.5


def test_config_checks():
    """Datasets need unique names and the resonance task its section."""
    base = {key: value for key, value in user_config.items() if key != "resonance"}
    with pytest.raises(ValidationError):
        Config(**{**base, "datasets": base["datasets"] + base["datasets"][:1]})
    with pytest.raises(ValidationError):
        Config(**{**base, "general": {**base["general"], "analysis": "resonance"}})
    assert Config(**base).resonance is None


def test_parse_binning():
    """Strings give (nbins, low, high), edge lists are kept."""
    assert parse_binning("0.98,1.1,120") == (120, 0.98, 1.1)
    assert parse_binning([0.0, 1.0, 3.0]) == [0.0, 1.0, 3.0]


def test_cli_overrides():
    """Existing keys of the allowed sections can be overridden."""
    updated = load_config_with_restricted_cli(
        user_config, ["kno.pt_min=0.5", "general.max_files=2"]
    )
    assert updated["kno"]["pt_min"] == 0.5
    assert updated["general"]["max_files"] == 2
    assert user_config["kno"]["pt_min"] == 0.15
    assert updated["resonance"] is not user_config["resonance"]


def test_cli_override_errors():
    """Malformed arguments, other sections and unknown keys are rejected."""
    with pytest.raises(ValueError):
        load_config_with_restricted_cli(user_config, ["kno.pt_min"])
    with pytest.raises(ValueError):
        load_config_with_restricted_cli(user_config, ["resonance.functions=[]"])
    with pytest.raises(KeyError):
        load_config_with_restricted_cli(user_config, ["kno.pt_max=2"])
