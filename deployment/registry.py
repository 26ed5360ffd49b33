import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from ape.contracts import ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from deployment.factories import ApeContractFactory, ContractFactory
from deployment.utils import _load_json

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single deployed contract in a registry file."""

    chain_id: ChainId
    name: ContractName
    contract_type: str
    variant: str
    address: ChecksumAddress
    deployer: str


def _get_entries(deployments: List, chain_id: ChainId) -> List[RegistryEntry]:
    """Returns a list of registry entries from deployed contracts."""
    entries = list()
    for deployed in deployments:
        entry = RegistryEntry(
            chain_id=chain_id,
            name=deployed.name,
            contract_type=deployed.contract_type,
            variant=deployed.variant,
            address=to_checksum_address(deployed.address),
            deployer=deployed.deployer,
        )
        entries.append(entry)
    return entries


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                contract_type=artifacts["contract_type"],
                variant=artifacts["variant"],
                address=artifacts["address"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path) -> Path:
    """Writes a contract registry to a file."""

    if not entries:
        print("No entries provided.")
        return filepath

    # Sort registry entries to enforce common order
    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "contract_type": entry.contract_type,
            "variant": entry.variant,
            "deployer": entry.deployer,
        }

    # Create the parent directory if it does not exist
    filepath.parent.mkdir(parents=True, exist_ok=True)

    # If the file already exists, attempt to merge the data, if not create a new file
    if filepath.exists():
        print(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)

        if any(chain_id in existing_data for chain_id in data):
            filepath = filepath.with_suffix(".unmerged.json")
            print(
                "Cannot merge registries with overlapping chain IDs.\n"
                f"Writing to {filepath} to avoid overwriting existing data."
            )
        else:
            existing_data.update(data)
            data = existing_data
    else:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_deployments(
    deployments: List, chain_id: ChainId, output_filepath: Path
) -> Path:
    """Creates a contract registry from the contracts deployed by a plan."""
    entries = _get_entries(deployments=deployments, chain_id=chain_id)
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath


def contracts_from_registry(
    filepath: Path, chain_id: ChainId, factory: Optional[ContractFactory] = None
) -> Dict[ContractName, ContractInstance]:
    """Returns logical contract name -> contract instance for one chain of a registry."""
    factory = factory or ApeContractFactory()

    registry_entries = read_registry(filepath=filepath)
    deployments = dict()
    for registry_entry in registry_entries:
        if registry_entry.chain_id != chain_id:
            continue
        deployments[registry_entry.name] = factory.at(
            registry_entry.contract_type, registry_entry.address
        )
    return deployments
