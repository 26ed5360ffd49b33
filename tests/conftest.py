from collections import defaultdict
from typing import NamedTuple

import pytest
from eth_utils import keccak, to_checksum_address
from ethpm_types.abi import ABIType, MethodABI

from deployment.constants import DEFAULT_INITIALIZER, PROXY_NAME, TOKEN_EXCHANGE_PLAN_FILEPATH
from deployment.deployer import Deployer
from deployment.factories import ContractFactory
from deployment.params import DeploymentPlan
from deployment.utils import _load_yaml

INITIAL_SUPPLY = 1_000_000 * 10**18

TRANSACTION_ABIS = {
    "grantMinterRole": [("minter", "address")],
    "grantRole": [("role", "bytes32"), ("account", "address")],
    "transfer": [("to", "address"), ("value", "uint256")],
}


class Revert(Exception):
    """Stands in for a reverted transaction"""


class FakeDeployment(NamedTuple):
    contract_type: str
    address: str
    sender: str
    args: list


class FakeTransaction(NamedTuple):
    contract: str
    address: str
    method: str
    args: tuple
    sender: str


class FakeContractType(NamedTuple):
    name: str


class FakeTransactionHandler:
    def __init__(self, contract, name):
        self.contract = contract
        self.name = name
        self.abis = [
            MethodABI(
                type="function",
                name=name,
                stateMutability="nonpayable",
                inputs=[ABIType(name=n, type=t) for n, t in TRANSACTION_ABIS[name]],
                outputs=[],
            )
        ]

    def __str__(self):
        return self.name

    def __call__(self, *args, sender):
        return self.contract.factory.transact(self.contract, self.name, args, sender)


class FakeContract:
    def __init__(self, factory, contract_type, address):
        self.factory = factory
        self.contract_type = FakeContractType(contract_type)
        self.address = address

    def balanceOf(self, owner):
        return self.factory.balances[self.address][owner]

    def MINTER_ROLE(self):
        return keccak(text="MINTER_ROLE")

    def __getattr__(self, name):
        if name in TRANSACTION_ABIS:
            return FakeTransactionHandler(self, name)
        raise AttributeError(name)


class FakeContractFactory(ContractFactory):
    """
    In-memory chain: CREATE-style addresses from sender and nonce, every
    deployment and transaction recorded, optional reverts by contract type
    or method name.
    """

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.nonces = defaultdict(int)
        self.deployments = list()
        self.transactions = list()
        self.proxies = dict()  # proxy address -> implementation address
        self.initializations = dict()  # proxy address -> (initializer, args)
        self.balances = defaultdict(lambda: defaultdict(int))
        self.events = list()  # (kind, contract type or method), in chain order

    def _next_address(self, sender):
        nonce = self.nonces[sender.address]
        self.nonces[sender.address] += 1
        return to_checksum_address(keccak(text=f"{sender.address}:{nonce}")[-20:])

    def deploy(self, contract_type, args, sender):
        if contract_type in self.fail_on:
            raise Revert(f"{contract_type} deployment reverted")
        address = self._next_address(sender)
        self.deployments.append(FakeDeployment(contract_type, address, sender.address, list(args)))
        self.events.append(("deploy", contract_type))
        self.balances[address][sender.address] = INITIAL_SUPPLY
        return FakeContract(self, contract_type, address)

    def deploy_proxy(
        self, contract_type, initializer_args, sender, owner, initializer=DEFAULT_INITIALIZER
    ):
        implementation = self.deploy(contract_type, [], sender)
        proxy = self.deploy(PROXY_NAME, [implementation.address, owner, initializer], sender)
        self.proxies[proxy.address] = implementation.address
        self.initializations[proxy.address] = (initializer, list(initializer_args))
        return self.at(contract_type, proxy.address)

    def at(self, contract_type, address):
        return FakeContract(self, contract_type, address)

    def deployed(self, contract_type):
        addresses = [d.address for d in self.deployments if d.contract_type == contract_type]
        if len(addresses) != 1:
            raise ValueError(f"expected one {contract_type}, got {len(addresses)}")
        for proxy_address, implementation in self.proxies.items():
            if implementation == addresses[0]:
                return self.at(contract_type, proxy_address)
        return self.at(contract_type, addresses[0])

    def transact(self, contract, method, args, sender):
        if method in self.fail_on:
            raise Revert(f"{method} reverted")
        transaction = FakeTransaction(
            contract.contract_type.name, contract.address, method, args, sender.address
        )
        self.transactions.append(transaction)
        self.events.append(("transact", method))
        return transaction

    def deployed_types(self):
        return [d.contract_type for d in self.deployments]


@pytest.fixture
def funding_accounts(accounts):
    return [accounts[index] for index in range(8)]


@pytest.fixture
def factory():
    return FakeContractFactory()


@pytest.fixture
def token_exchange_config():
    return _load_yaml(TOKEN_EXCHANGE_PLAN_FILEPATH)


@pytest.fixture
def exchange_config():
    # token1 admin A, token2 admin B, exchange admin C
    return {
        "deployment": {"name": "exchange", "chain_id": 1337},
        "roles": {"tokenOneAdmin": 0, "tokenTwoAdmin": 1, "exchangeAdmin": 2},
        "steps": [
            {"deploy": {"name": "token1", "contract_type": "GMToken", "sender": "$tokenOneAdmin"}},
            {"deploy": {"name": "token2", "contract_type": "MDTToken", "sender": "$tokenTwoAdmin"}},
            {
                "deploy": {
                    "name": "exchange",
                    "contract_type": "MDTTokenExchange",
                    "sender": "$exchangeAdmin",
                    "proxy": {"initializer": ["$token1", "$token2"]},
                    "privileges": [{"contract": "token1", "method": "grantMinterRole"}],
                }
            },
            {
                "grant": {
                    "contract": "token1",
                    "method": "grantMinterRole",
                    "grantee": "$exchange",
                }
            },
        ],
    }


@pytest.fixture
def run_plan():
    def _run_plan(config, funding_accounts, factory, upgradeable=False):
        plan = DeploymentPlan.from_config(
            config, accounts=funding_accounts, upgradeable=upgradeable
        )
        deployer = Deployer(plan=plan, factory=factory, autosign=True)
        return deployer.run()

    return _run_plan
