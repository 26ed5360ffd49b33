from pathlib import Path
from unittest.mock import Mock

import pytest

from deployment.constants import ARTIFACTS_DIR, UPGRADEABLE_VARIANT_ENVVAR
from deployment.utils import (
    format_token_amount,
    get_artifact_filepath,
    parse_flag,
    resolve_upgradeable_flag,
    validate_config,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, False),
        ("", False),
        ("  ", False),
        ("0", False),
        ("false", False),
        ("No", False),
        ("OFF", False),
        ("1", True),
        ("true", True),
        (" Yes ", True),
        ("on", True),
        ("enabled", True),
        ("2", True),
    ],
)
def test_parse_flag(value, expected):
    assert parse_flag(value) is expected


def test_upgradeable_flag_from_environment():
    assert resolve_upgradeable_flag(environ={}) is False
    assert resolve_upgradeable_flag(environ={UPGRADEABLE_VARIANT_ENVVAR: "1"}) is True
    assert resolve_upgradeable_flag(environ={UPGRADEABLE_VARIANT_ENVVAR: "0"}) is False
    assert resolve_upgradeable_flag(environ={"OTHER": "1"}) is False


@pytest.mark.parametrize("override", [True, False])
def test_upgradeable_flag_override_wins(override):
    environ = {UPGRADEABLE_VARIANT_ENVVAR: "false" if override else "true"}
    assert resolve_upgradeable_flag(override=override, environ=environ) is override


def test_upgradeable_flag_from_process_environment(monkeypatch):
    monkeypatch.setenv(UPGRADEABLE_VARIANT_ENVVAR, "yes")
    assert resolve_upgradeable_flag() is True

    monkeypatch.setenv(UPGRADEABLE_VARIANT_ENVVAR, "no")
    assert resolve_upgradeable_flag() is False


@pytest.mark.parametrize(
    "amount, decimals, expected",
    [
        (0, 18, "0"),
        (10**18, 18, "1"),
        (1_000_000 * 10**18, 18, "1000000"),
        (15 * 10**17, 18, "1"),
        (2_500_000, 6, "2"),
    ],
)
def test_format_token_amount(amount, decimals, expected):
    assert format_token_amount(amount, decimals=decimals) == expected


def test_artifact_filepath():
    config = {"artifacts": {"dir": "/tmp/registries", "filename": "token-exchange.json"}}
    assert get_artifact_filepath(config) == Path("/tmp/registries/token-exchange.json")

    config = {"artifacts": {"filename": "token-exchange.json"}}
    assert get_artifact_filepath(config) == Path(ARTIFACTS_DIR) / "token-exchange.json"

    with pytest.raises(ValueError, match="artifact filename is not set"):
        get_artifact_filepath({"artifacts": {"dir": "/tmp"}})


def test_upgradeable_flag_from_dotenv_file(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text(f"{UPGRADEABLE_VARIANT_ENVVAR}=true\n")
    monkeypatch.chdir(tmp_path)
    # registered first so the value loaded from .env is removed again afterwards
    monkeypatch.setenv(UPGRADEABLE_VARIANT_ENVVAR, "")
    monkeypatch.delenv(UPGRADEABLE_VARIANT_ENVVAR)

    assert resolve_upgradeable_flag() is True

    # the process environment wins over the file
    monkeypatch.setenv(UPGRADEABLE_VARIANT_ENVVAR, "false")
    assert resolve_upgradeable_flag() is False
    assert resolve_upgradeable_flag(override=True) is True


def test_validate_config_rejects_wrong_chain_on_live_network(monkeypatch, tmp_path):
    monkeypatch.setattr("deployment.utils.networks", Mock(**{"provider.network.chain_id": 1}))
    monkeypatch.setattr("deployment.utils.is_local_network", lambda: False)
    config = {
        "deployment": {"name": "token-exchange", "chain_id": 11155111},
        "artifacts": {"dir": str(tmp_path), "filename": "token-exchange.json"},
    }

    with pytest.raises(ValueError, match=r"chain_id in plan file \(11155111\) does not match"):
        validate_config(config)

    config["deployment"]["chain_id"] = 1
    assert validate_config(config) == tmp_path / "token-exchange.json"

    (tmp_path / "token-exchange.json").write_text('{"1": {}}')
    with pytest.raises(ValueError, match="already published for chain_id 1"):
        validate_config(config)


def test_validate_config_allows_any_chain_locally(monkeypatch, tmp_path):
    monkeypatch.setattr("deployment.utils.networks", Mock(**{"provider.network.chain_id": 1337}))
    monkeypatch.setattr("deployment.utils.is_local_network", lambda: True)
    (tmp_path / "token-exchange.json").write_text('{"5": {}}')
    config = {
        "deployment": {"chain_id": 5},
        "artifacts": {"dir": str(tmp_path), "filename": "token-exchange.json"},
    }
    assert validate_config(config) == tmp_path / "token-exchange.json"
