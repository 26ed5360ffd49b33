import json
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import yaml
from ape import accounts, networks, project
from ape.api import AccountAPI
from ape.contracts import ContractContainer
from dotenv import find_dotenv, load_dotenv

from deployment.constants import (
    ARTIFACTS_DIR,
    FALSY_VALUES,
    LOCAL_NETWORKS,
    OZ_DEPENDENCY_NAME,
    OZ_DEPENDENCY_VERSION,
    PROXY_NAME,
    TOKEN_DECIMALS,
    TRUTHY_VALUES,
    UPGRADEABLE_VARIANT_ENVVAR,
)


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def is_local_network() -> bool:
    return networks.provider.network.name in LOCAL_NETWORKS


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the registry file."""
    artifact_config = config.get("artifacts", {})
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in plan file.")
    return artifact_dir / filename


def validate_config(config: Dict) -> Path:
    """
    Checks that the plan targets the connected chain and that the deployment
    has not already been published for its chain_id.
    """
    print("Validating plan against network...")

    deployment = config.get("deployment")
    if not deployment:
        raise ValueError("deployment is not set in plan file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise ValueError("chain_id is not set in plan file.")

    config_chain_id = int(config_chain_id)
    chain_mismatch = config_chain_id != networks.provider.network.chain_id
    live_deployment = not is_local_network()
    if chain_mismatch and live_deployment:
        raise ValueError(
            f"chain_id in plan file ({config_chain_id}) does not match "
            f"chain_id of current network ({networks.provider.network.chain_id})."
        )

    registry_filepath = get_artifact_filepath(config=config)
    if not registry_filepath.exists() or not live_deployment:
        return registry_filepath

    registry_chain_ids = map(int, _load_json(registry_filepath).keys())
    if config_chain_id in registry_chain_ids:
        raise ValueError(f"Deployment is already published for chain_id {config_chain_id}.")

    return registry_filepath


def parse_flag(value: Optional[str]) -> bool:
    """
    Interprets a boolean-like configuration value.
    Unset, empty and explicit falsy words are False; any other value is True.
    """
    if value is None:
        return False
    value = value.strip().lower()
    if value in TRUTHY_VALUES:
        return True
    if value in FALSY_VALUES:
        return False
    return True


def resolve_upgradeable_flag(
    override: Optional[bool] = None, environ: Optional[Mapping[str, str]] = None
) -> bool:
    """
    Resolves whether the upgradeable variant is deployed.
    An explicit override wins; otherwise the environment (and .env file) is consulted.
    """
    if override is not None:
        return override
    if environ is None:
        load_dotenv(find_dotenv(usecwd=True))
        environ = os.environ
    return parse_flag(environ.get(UPGRADEABLE_VARIANT_ENVVAR))


def format_token_amount(amount: int, decimals: int = TOKEN_DECIMALS) -> str:
    """Renders a raw token amount in whole units."""
    return str(int(amount) // 10**decimals)


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def get_proxy_container() -> ContractContainer:
    dependency = project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
    return getattr(dependency, PROXY_NAME)


def get_funding_accounts(aliases: Sequence[str] = ()) -> List[AccountAPI]:
    """Funding accounts in role index order: named aliases, or test accounts locally."""
    if aliases:
        return [accounts.load(alias) for alias in aliases]
    if not is_local_network():
        raise ValueError("Must specify funding account aliases when deploying to live networks")
    return list(accounts.test_accounts)
