import typing
from abc import ABC, abstractmethod
from typing import Any, Sequence

from ape import chain
from ape.api import AccountAPI
from ape.contracts.base import ContractInstance
from ape.utils import ZERO_ADDRESS
from eth_typing import ChecksumAddress

from deployment.constants import DEFAULT_INITIALIZER
from deployment.utils import get_contract_container, get_proxy_container


class ContractFactory(ABC):
    """
    Deploys and looks up contract instances by contract type name.
    Every call blocks until the network has confirmed the transaction.
    """

    @abstractmethod
    def deploy(
        self, contract_type: str, args: Sequence[Any], sender: AccountAPI
    ) -> ContractInstance:
        """Deploys a new instance with constructor arguments from the sender."""
        raise NotImplementedError

    @abstractmethod
    def deploy_proxy(
        self,
        contract_type: str,
        initializer_args: Sequence[Any],
        sender: AccountAPI,
        owner: ChecksumAddress,
        initializer: str = DEFAULT_INITIALIZER,
    ) -> ContractInstance:
        """
        Deploys an implementation plus a proxy initialized with `initializer_args`,
        returning the implementation type bound at the proxy address.
        """
        raise NotImplementedError

    @abstractmethod
    def at(self, contract_type: str, address: ChecksumAddress) -> ContractInstance:
        raise NotImplementedError

    @abstractmethod
    def deployed(self, contract_type: str) -> ContractInstance:
        """Returns the already deployed instance of a contract type."""
        raise NotImplementedError


class ApeContractFactory(ContractFactory):
    """Contract factory backed by the ape project and its dependencies."""

    def __init__(self, publish: bool = False):
        self.publish = publish

    def deploy(
        self, contract_type: str, args: Sequence[Any], sender: AccountAPI
    ) -> ContractInstance:
        container = get_contract_container(contract_type)
        return sender.deploy(container, *args, publish=self.publish)

    def deploy_proxy(
        self,
        contract_type: str,
        initializer_args: Sequence[Any],
        sender: AccountAPI,
        owner: ChecksumAddress,
        initializer: str = DEFAULT_INITIALIZER,
    ) -> ContractInstance:
        implementation = self.deploy(contract_type, [], sender)
        method_handler = getattr(implementation, initializer)
        data = method_handler.encode_input(*initializer_args)

        proxy_container = get_proxy_container()
        print(
            f"\nDeploying {proxy_container.contract_type.name} "
            f"contract to proxy {contract_type} at {implementation.address}."
        )
        proxy_contract = sender.deploy(
            proxy_container, implementation.address, owner, data, publish=self.publish
        )
        print(
            f"\nWrapping {contract_type} into {proxy_contract.contract_type.name} "
            f"at {proxy_contract.address}."
        )
        return self.at(contract_type, proxy_contract.address)

    def at(self, contract_type: str, address: ChecksumAddress) -> ContractInstance:
        return get_contract_container(contract_type).at(address)

    def deployed(self, contract_type: str) -> ContractInstance:
        container = get_contract_container(contract_type)
        contract_instance = _get_contract_instance(container.deployments, contract_type)
        if contract_instance == ZERO_ADDRESS:
            raise ValueError(f"{contract_type} has not been deployed on this network.")

        # an implementation behind a proxy is reached through the proxy
        local_proxies = chain.contracts._local_proxies
        for proxy_address, proxy_info in local_proxies.items():
            if proxy_info.target == contract_instance.address:
                return container.at(proxy_address)

        return contract_instance


def _get_contract_instance(
    contract_instances: typing.Sequence[ContractInstance], contract_type: str
) -> typing.Union[ContractInstance, ChecksumAddress]:
    if not contract_instances:
        return ZERO_ADDRESS
    if len(contract_instances) != 1:
        raise ValueError(
            f"{contract_type} is ambiguous - "
            f"expected exactly one contract instance, got {len(contract_instances)}"
            " Checkout ~/.ape/<NETWORK>/deployments_map.json"
        )
    return contract_instances[0]
