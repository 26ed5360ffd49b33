import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, List, NamedTuple, Optional, Sequence

from ape.api import AccountAPI
from ape.contracts.base import ContractInstance
from eth_typing import ChecksumAddress

from deployment.constants import DEFAULT_INITIALIZER, DEFAULT_ROLE_INDICES
from deployment.roles import RoleMap
from deployment.strategies import DeploymentStrategy, PlainDeployment, ProxyDeployment
from deployment.utils import _load_yaml
from deployment.variables import (
    InvalidVariable,
    RoleAccount,
    VariableContext,
    _process_raw_value,
    _process_raw_values,
    _references,
    _resolve_param,
)

DEPLOY_STEP_KEY = "deploy"
GRANT_STEP_KEY = "grant"
CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_PROXY_PARAMETER_KEY = "proxy"
CONTRACT_UPGRADEABLE_PARAMETER_KEY = "upgradeable"


class DeployedContract(NamedTuple):
    """A contract deployed by a plan step."""

    name: str
    contract_type: str
    variant: str
    address: ChecksumAddress
    instance: ContractInstance
    deployer: ChecksumAddress


class Privilege(NamedTuple):
    """A capability on `contract` that some other contract needs granted."""

    contract: str
    method: Optional[str] = None
    role: Optional[str] = None


class PlanStep(ABC):
    name: str

    @property
    @abstractmethod
    def references(self) -> List[str]:
        """Logical contract names that must be deployed before this step runs."""
        raise NotImplementedError

    @abstractmethod
    def execute(self, deployer, deployments) -> None:
        raise NotImplementedError


class DeployStep(PlanStep):
    def __init__(
        self,
        name: str,
        strategy: DeploymentStrategy,
        sender: AccountAPI,
        symbol: Optional[str] = None,
        privileges: Optional[List[Privilege]] = None,
    ):
        self.name = name
        self.strategy = strategy
        self.sender = sender
        self.symbol = symbol
        self.privileges = privileges or list()

    @property
    def contract_type(self) -> str:
        return self.strategy.contract_type

    @property
    def variant(self) -> str:
        return self.strategy.variant

    @property
    def references(self) -> List[str]:
        return self.strategy.references

    def execute(self, deployer, deployments) -> None:
        deployed = deployer.deploy(self, deployments)
        deployments.add(deployed)

    def __repr__(self):
        return f"DeployStep({self.name}, {self.contract_type}, {self.variant})"


class RoleGrant(PlanStep):
    """
    Grants `grantee` a privilege on an already deployed contract, sent by the
    contract's admin. Either a dedicated method is called with the grantee
    (`grantMinterRole(grantee)`) or an AccessControl role id is looked up and
    granted (`grantRole(MINTER_ROLE(), grantee)`).
    """

    def __init__(
        self,
        contract: str,
        grantee: Any,
        sender: AccountAPI,
        method: Optional[str] = None,
        role: Optional[str] = None,
    ):
        if bool(method) == bool(role):
            raise DeploymentPlan.Invalid(
                f"Grant on {contract} needs exactly one of 'method' or 'role'."
            )
        self.contract = contract
        self.grantee = grantee
        self.sender = sender
        self.method = method
        self.role = role

    @property
    def name(self) -> str:
        return f"{self.contract}.{self.method or self.role}"

    @property
    def privilege(self) -> Privilege:
        return Privilege(contract=self.contract, method=self.method, role=self.role)

    @property
    def references(self) -> List[str]:
        return [self.contract] + _references(self.grantee)

    def grants_to(self, contract_name: str) -> bool:
        return contract_name in _references(self.grantee)

    def resolve_grantee(self, deployments) -> Any:
        return _resolve_param(self.grantee, deployments)

    def execute(self, deployer, deployments) -> None:
        receipt = deployer.grant(self, deployments)
        deployments.receipts.append(receipt)

    def __repr__(self):
        return f"RoleGrant({self.name})"


class DeploymentPlan:
    """An ordered list of deploy and grant steps, validated at construction."""

    class Invalid(ValueError):
        """Raised when the deployment plan is malformed or out of order"""

    def __init__(
        self,
        steps: Sequence[PlanStep],
        roles: RoleMap,
        upgradeable: bool = False,
        name: str = None,
    ):
        self.steps = list(steps)
        self.roles = roles
        self.upgradeable = upgradeable
        self.name = name
        self._validate()

    @classmethod
    def from_yaml(cls, filepath: Path, *args, **kwargs) -> "DeploymentPlan":
        config = _load_yaml(filepath)
        return cls.from_config(config, *args, **kwargs)

    @classmethod
    def from_config(
        cls,
        config: typing.Dict,
        accounts: Sequence[AccountAPI],
        upgradeable: bool = False,
    ) -> "DeploymentPlan":
        """Builds the plan for one variant; the variant cannot change afterwards."""
        print("Processing deployment plan...")
        if not isinstance(config, dict) or not config.get("steps"):
            raise cls.Invalid("Plan file missing 'steps' field.")

        role_indices = config.get("roles") or DEFAULT_ROLE_INDICES
        roles = RoleMap.from_accounts(accounts, indices=role_indices)
        constants = config.get("constants") or dict()
        raw_steps = [cls._split_step(entry) for entry in config["steps"]]
        declared_contracts = [
            data.get("name") for kind, data in raw_steps if kind == DEPLOY_STEP_KEY
        ]

        steps = list()
        deployed = list()
        senders = dict()
        for kind, data in raw_steps:
            step_name = data.get("name") or data.get("contract") or kind
            context = VariableContext(
                step_name=step_name,
                available_contracts=deployed,
                declared_contracts=declared_contracts,
                roles=roles,
                constants=constants,
            )
            try:
                if kind == DEPLOY_STEP_KEY:
                    step = cls._deploy_step(data, context, upgradeable)
                    deployed.append(step.name)
                    senders[step.name] = step.sender
                else:
                    step = cls._grant_step(data, context, senders)
            except InvalidVariable as e:
                raise cls.Invalid(str(e)) from e
            steps.append(step)

        name = (config.get("deployment") or {}).get("name")
        return cls(steps=steps, roles=roles, upgradeable=upgradeable, name=name)

    @classmethod
    def _split_step(cls, entry: Any) -> typing.Tuple[str, typing.Dict]:
        if not isinstance(entry, dict) or len(entry) != 1:
            raise cls.Invalid(f"Malformed plan step: {entry}")
        kind, data = list(entry.items())[0]  # only one entry
        if kind not in (DEPLOY_STEP_KEY, GRANT_STEP_KEY) or not isinstance(data, dict):
            raise cls.Invalid(f"Malformed plan step: {entry}")
        return kind, data

    @classmethod
    def _sender(cls, value: Any, context: VariableContext) -> RoleAccount:
        sender = _process_raw_value(value, context)
        if not isinstance(sender, RoleAccount):
            raise cls.Invalid(f"Sender of {context.step_name} must be a role, got '{value}'.")
        return sender

    @classmethod
    def _deploy_step(
        cls, data: typing.Dict, context: VariableContext, upgradeable: bool
    ) -> DeployStep:
        name = data.get("name")
        if not name:
            raise cls.Invalid(f"Deploy step is missing a name: {data}")
        if "sender" not in data:
            raise cls.Invalid(f"Deploy step {name} is missing a sender.")
        contract_type = data.get("contract_type", name)
        sender = cls._sender(data["sender"], context)

        if upgradeable and CONTRACT_UPGRADEABLE_PARAMETER_KEY in data:
            strategy = cls._proxy_strategy(
                data[CONTRACT_UPGRADEABLE_PARAMETER_KEY], contract_type, context, sender
            )
        elif CONTRACT_PROXY_PARAMETER_KEY in data:
            if CONTRACT_CONSTRUCTOR_PARAMETER_KEY in data:
                raise cls.Invalid(f"{name} cannot have both constructor and proxy parameters.")
            strategy = cls._proxy_strategy(
                data[CONTRACT_PROXY_PARAMETER_KEY], contract_type, context, sender
            )
        else:
            params = _process_raw_values(data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY), context)
            strategy = PlainDeployment(contract_type, params)

        privileges = list()
        for privilege in data.get("privileges") or []:
            if not isinstance(privilege, dict) or "contract" not in privilege:
                raise cls.Invalid(f"Malformed privilege for {name}: {privilege}")
            privileges.append(
                Privilege(
                    contract=privilege["contract"],
                    method=privilege.get("method"),
                    role=privilege.get("role"),
                )
            )

        return DeployStep(
            name=name,
            strategy=strategy,
            sender=sender.account,
            symbol=data.get("symbol"),
            privileges=privileges,
        )

    @classmethod
    def _proxy_strategy(
        cls,
        proxy_data: Optional[typing.Dict],
        contract_type: str,
        context: VariableContext,
        sender: RoleAccount,
    ) -> ProxyDeployment:
        proxy_data = proxy_data or dict()
        if not isinstance(proxy_data, dict):
            raise cls.Invalid(f"Malformed proxy parameters for {context.step_name}.")
        params = _process_raw_values(proxy_data.get("initializer"), context)
        if ProxyDeployment.OWNER_PARAMETER in params:
            raise cls.Invalid(
                f"'{ProxyDeployment.OWNER_PARAMETER}' is reserved for the proxy owner "
                f"of {context.step_name}; use 'owner'."
            )
        owner = sender  # the proxy admin defaults to whoever deploys it
        if "owner" in proxy_data:
            owner = _process_raw_value(proxy_data["owner"], context)
        return ProxyDeployment(
            contract_type=proxy_data.get("contract_type", contract_type),
            params=params,
            owner=owner,
            initializer=proxy_data.get("initializer_method", DEFAULT_INITIALIZER),
        )

    @classmethod
    def _grant_step(
        cls, data: typing.Dict, context: VariableContext, senders: typing.Dict[str, AccountAPI]
    ) -> RoleGrant:
        contract = data.get("contract")
        if contract not in context.declared_contracts:
            raise cls.Invalid(f"Grant targets unknown contract '{contract}'.")
        if contract not in context.available_contracts:
            raise cls.Invalid(f"Grant on {contract} is scheduled before {contract} is deployed.")
        if "grantee" not in data:
            raise cls.Invalid(f"Grant on {contract} is missing a grantee.")

        if "sender" in data:
            sender = cls._sender(data["sender"], context).account
        else:
            sender = senders[contract]  # the contract's admin

        return RoleGrant(
            contract=contract,
            grantee=_process_raw_value(data["grantee"], context),
            sender=sender,
            method=data.get("method"),
            role=data.get("role"),
        )

    def _validate(self) -> None:
        deployed = list()
        for position, step in enumerate(self.steps):
            if isinstance(step, DeployStep) and step.name in deployed:
                raise self.Invalid(f"Contract {step.name} is deployed more than once.")
            for reference in step.references:
                if reference not in deployed:
                    raise self.Invalid(
                        f"Step #{position} ({step.name}) references {reference} "
                        f"before it is deployed."
                    )
            if isinstance(step, DeployStep):
                deployed.append(step.name)

        for position, step in enumerate(self.steps):
            if not isinstance(step, DeployStep):
                continue
            later_grants = [s for s in self.steps[position + 1 :] if isinstance(s, RoleGrant)]
            for privilege in step.privileges:
                if privilege.contract not in deployed:
                    raise self.Invalid(
                        f"{step.name} requires a privilege on unknown "
                        f"contract {privilege.contract}."
                    )
                granted = any(
                    grant.privilege == privilege and grant.grants_to(step.name)
                    for grant in later_grants
                )
                if not granted:
                    raise self.Invalid(
                        f"{step.name} requires {privilege.method or privilege.role} on "
                        f"{privilege.contract} but no grant is scheduled after both deployments."
                    )

    @property
    def deploy_steps(self) -> List[DeployStep]:
        return [step for step in self.steps if isinstance(step, DeployStep)]

    @property
    def grant_steps(self) -> List[RoleGrant]:
        return [step for step in self.steps if isinstance(step, RoleGrant)]

    def contract_types(self) -> typing.Dict[str, str]:
        """Logical contract name -> contract type that this plan deploys."""
        return OrderedDict((step.name, step.contract_type) for step in self.deploy_steps)

    def symbols(self) -> typing.Dict[str, str]:
        """Logical contract name -> token symbol, for steps deploying tokens."""
        return OrderedDict(
            (step.name, step.symbol) for step in self.deploy_steps if step.symbol is not None
        )

