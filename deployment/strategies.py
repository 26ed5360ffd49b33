from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, List, Mapping

from ape.api import AccountAPI
from ape.contracts.base import ContractInstance

from deployment.constants import DEFAULT_INITIALIZER, PLAIN_VARIANT, PROXY_VARIANT
from deployment.factories import ContractFactory
from deployment.variables import _references, _resolve_param, _resolve_params


class DeploymentStrategy(ABC):
    """How a logical contract reaches the chain: directly, or behind a proxy."""

    variant: str = None

    def __init__(self, contract_type: str, params: OrderedDict):
        self.contract_type = contract_type
        self.params = params

    @property
    def references(self) -> List[str]:
        return _references(self.params)

    def resolve(self, deployments: Mapping[str, Any]) -> OrderedDict:
        """Resolves the deployment arguments against the contracts deployed so far."""
        return _resolve_params(self.params, deployments)

    @abstractmethod
    def deploy(
        self, factory: ContractFactory, resolved_params: OrderedDict, sender: AccountAPI
    ) -> ContractInstance:
        raise NotImplementedError


class PlainDeployment(DeploymentStrategy):
    variant = PLAIN_VARIANT

    def deploy(
        self, factory: ContractFactory, resolved_params: OrderedDict, sender: AccountAPI
    ) -> ContractInstance:
        return factory.deploy(self.contract_type, list(resolved_params.values()), sender)


class ProxyDeployment(DeploymentStrategy):
    """Deploys an implementation behind a transparent proxy and calls its initializer."""

    variant = PROXY_VARIANT
    OWNER_PARAMETER = "initialOwner"

    def __init__(
        self,
        contract_type: str,
        params: OrderedDict,
        owner: Any,
        initializer: str = DEFAULT_INITIALIZER,
    ):
        super().__init__(contract_type, params)
        self.owner = owner
        self.initializer = initializer

    @property
    def references(self) -> List[str]:
        return super().references + _references(self.owner)

    def resolve(self, deployments: Mapping[str, Any]) -> OrderedDict:
        resolved_params = super().resolve(deployments)
        resolved_params[self.OWNER_PARAMETER] = _resolve_param(self.owner, deployments)
        return resolved_params

    def deploy(
        self, factory: ContractFactory, resolved_params: OrderedDict, sender: AccountAPI
    ) -> ContractInstance:
        initializer_args = OrderedDict(resolved_params)
        owner = initializer_args.pop(self.OWNER_PARAMETER)
        return factory.deploy_proxy(
            self.contract_type,
            list(initializer_args.values()),
            sender,
            owner=owner,
            initializer=self.initializer,
        )
