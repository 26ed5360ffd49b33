"""
Helpers for driving a deployed token exchange suite from scripts and tests.
"""

import typing
from collections import OrderedDict

from ape import networks
from ape.contracts.base import ContractInstance
from eth_typing import ChecksumAddress

from deployment.factories import ContractFactory
from deployment.params import DeploymentPlan
from deployment.utils import format_token_amount


def load_deployed_contracts(
    plan: DeploymentPlan, factory: ContractFactory
) -> typing.Dict[str, ContractInstance]:
    """Fetches the deployed instance of every contract of the plan, by logical name."""
    contracts = OrderedDict()
    for name, contract_type in plan.contract_types().items():
        contracts[name] = factory.deployed(contract_type)
    return contracts


def suite_tokens(
    plan: DeploymentPlan, contracts: typing.Mapping[str, ContractInstance]
) -> typing.Dict[str, ContractInstance]:
    """Token symbol -> token contract, for the tokens of the plan."""
    return OrderedDict((symbol, contracts[name]) for name, symbol in plan.symbols().items())


def check_balance(
    address: ChecksumAddress,
    tokens: typing.Mapping[str, ContractInstance],
    include_ether: bool = True,
) -> typing.Dict[str, int]:
    """Prints and returns the raw balances of an address, keyed by symbol."""
    balances = OrderedDict()
    if include_ether:
        balances["ETH"] = networks.provider.get_balance(address)
    for symbol, token in tokens.items():
        balances[symbol] = token.balanceOf(address)

    pretty_balances = " ".join(
        f"{format_token_amount(amount)} {symbol}" for symbol, amount in balances.items()
    )
    print(f"{address} has {pretty_balances}")
    return balances
