import json

import pytest

from deployment.constants import PLAIN_VARIANT, PROXY_VARIANT
from deployment.deployer import Deployer
from deployment.params import DeploymentPlan
from deployment.registry import (
    RegistryEntry,
    contracts_from_registry,
    read_registry,
    registry_from_deployments,
    write_registry,
)


@pytest.fixture
def deployments(token_exchange_config, funding_accounts, factory, run_plan):
    return run_plan(token_exchange_config, funding_accounts, factory)


def test_registry_from_deployments(deployments, tmp_path):
    filepath = tmp_path / "registry" / "token-exchange.json"
    output = registry_from_deployments(list(deployments), chain_id=1337, output_filepath=filepath)
    assert output == filepath

    data = json.loads(filepath.read_text())
    assert list(data) == ["1337"]
    assert sorted(data["1337"]) == ["GM", "MDT", "MDTExchange", "XCN", "XCNExchange"]
    assert data["1337"]["XCNExchange"] == {
        "address": deployments["XCNExchange"].address,
        "contract_type": "XCNTokenExchange",
        "variant": PROXY_VARIANT,
        "deployer": deployments["XCNExchange"].deployer,
    }

    entries = read_registry(filepath)
    assert len(entries) == 5
    gm = [entry for entry in entries if entry.name == "GM"][0]
    assert gm == RegistryEntry(
        chain_id=1337,
        name="GM",
        contract_type="GMToken",
        variant=PLAIN_VARIANT,
        address=deployments["GM"].address,
        deployer=deployments["GM"].deployer,
    )


def test_deployer_finalize(token_exchange_config, funding_accounts, factory, tmp_path):
    plan = DeploymentPlan.from_config(token_exchange_config, accounts=funding_accounts)
    deployer = Deployer(plan=plan, factory=factory, autosign=True)
    deployments = deployer.run()

    filepath = deployer.finalize(deployments, tmp_path / "token-exchange.json", chain_id=1337)
    assert {entry.name for entry in read_registry(filepath)} == set(deployments.addresses())


def test_overlapping_chain_is_not_merged(deployments, tmp_path, capsys):
    filepath = tmp_path / "token-exchange.json"
    registry_from_deployments(list(deployments), chain_id=1337, output_filepath=filepath)
    published = filepath.read_text()

    output = registry_from_deployments(list(deployments), chain_id=1337, output_filepath=filepath)
    assert output == tmp_path / "token-exchange.unmerged.json"
    assert filepath.read_text() == published
    assert "Cannot merge registries with overlapping chain IDs" in capsys.readouterr().out


def test_other_chain_is_merged(deployments, tmp_path):
    filepath = tmp_path / "token-exchange.json"
    registry_from_deployments(list(deployments), chain_id=1337, output_filepath=filepath)
    output = registry_from_deployments(list(deployments), chain_id=5, output_filepath=filepath)
    assert output == filepath

    entries = read_registry(filepath)
    assert {entry.chain_id for entry in entries} == {5, 1337}
    assert len(entries) == 10


def test_write_nothing(tmp_path):
    filepath = tmp_path / "empty.json"
    assert write_registry([], filepath) == filepath
    assert not filepath.exists()


def test_contracts_from_registry(deployments, factory, tmp_path):
    filepath = tmp_path / "token-exchange.json"
    registry_from_deployments(list(deployments), chain_id=1337, output_filepath=filepath)
    registry_from_deployments(list(deployments)[:1], chain_id=5, output_filepath=filepath)

    contracts = contracts_from_registry(filepath, chain_id=1337, factory=factory)
    assert set(contracts) == set(deployments.addresses())
    assert contracts["XCNExchange"].address == deployments["XCNExchange"].address
    assert contracts["XCNExchange"].contract_type.name == "XCNTokenExchange"

    assert list(contracts_from_registry(filepath, chain_id=5, factory=factory)) == ["GM"]
    assert contracts_from_registry(filepath, chain_id=10, factory=factory) == {}
