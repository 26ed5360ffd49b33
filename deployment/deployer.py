import typing
from collections import OrderedDict
from pathlib import Path
from typing import Any, List, Optional, Sequence

from ape.api import AccountAPI, ReceiptAPI
from ape.contracts.base import ContractTransactionHandler
from eth_typing import ChecksumAddress
from ethpm_types import MethodABI
from web3 import Web3

from deployment.confirm import _confirm_resolution, _continue
from deployment.constants import ROLE_GRANT_METHOD
from deployment.factories import ApeContractFactory, ContractFactory
from deployment.params import DeployedContract, DeploymentPlan, DeployStep, RoleGrant
from deployment.registry import registry_from_deployments
from deployment.utils import format_token_amount, resolve_upgradeable_flag

w3 = Web3()


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.
    """

    def __init__(self, account: AccountAPI, autosign: bool = False):
        self._account = account
        self._autosign = autosign
        if hasattr(account, "set_autosign"):
            # keyfile accounts only; test accounts always sign
            self._account.set_autosign(autosign)

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"\nTransacting {method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method}"
            f" from {self._account.address}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        return method(*args, sender=self._account)


class DeploymentResult:
    """The contracts deployed by one run of a plan, in deployment order."""

    def __init__(self):
        self.contracts: typing.OrderedDict[str, DeployedContract] = OrderedDict()
        self.receipts: List[ReceiptAPI] = list()

    def add(self, deployed: DeployedContract) -> None:
        if deployed.name in self.contracts:
            raise ValueError(f"{deployed.name} was already deployed in this run.")
        self.contracts[deployed.name] = deployed

    def __getitem__(self, name: str) -> DeployedContract:
        return self.contracts[name]

    def __contains__(self, name: str) -> bool:
        return name in self.contracts

    def __iter__(self):
        return iter(self.contracts.values())

    def __len__(self) -> int:
        return len(self.contracts)

    def addresses(self) -> typing.Dict[str, ChecksumAddress]:
        """Logical contract name -> deployed address."""
        return OrderedDict((name, c.address) for name, c in self.contracts.items())


class Deployer:
    """
    Executes a deployment plan one step at a time. Every step waits for its
    transaction to be confirmed before the next one starts, and the first
    failure aborts the remaining plan without undoing completed steps.
    """

    def __init__(
        self,
        plan: DeploymentPlan,
        factory: Optional[ContractFactory] = None,
        autosign: bool = False,
        path: Optional[Path] = None,
    ):
        self.plan = plan
        self.factory = factory or ApeContractFactory()
        self.path = path
        self._autosign = autosign
        self._transactors: typing.Dict[ChecksumAddress, Transactor] = dict()
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")

    @classmethod
    def from_yaml(
        cls,
        filepath: Path,
        accounts: Sequence[AccountAPI],
        upgradeable: Optional[bool] = None,
        **kwargs,
    ) -> "Deployer":
        upgradeable = resolve_upgradeable_flag(override=upgradeable)
        plan = DeploymentPlan.from_yaml(filepath, accounts=accounts, upgradeable=upgradeable)
        return cls(plan=plan, path=filepath, **kwargs)

    def transactor(self, account: AccountAPI) -> Transactor:
        transactor = self._transactors.get(account.address)
        if transactor is None:
            transactor = Transactor(account, autosign=self._autosign)
            self._transactors[account.address] = transactor
        return transactor

    def transact(self, method: ContractTransactionHandler, *args, sender: AccountAPI):
        return self.transactor(sender).transact(method, *args)

    def deploy(self, step: DeployStep, deployments: DeploymentResult) -> DeployedContract:
        resolved_params = step.strategy.resolve(deployments)
        print(
            f"\nDeploying {step.name} ({step.contract_type}, {step.variant}) "
            f"from {step.sender.address}"
        )
        if not self._autosign:
            _confirm_resolution(resolved_params, step.name)

        instance = step.strategy.deploy(self.factory, resolved_params, step.sender)
        deployed = DeployedContract(
            name=step.name,
            contract_type=step.contract_type,
            variant=step.variant,
            address=instance.address,
            instance=instance,
            deployer=step.sender.address,
        )
        print(f"{step.name} deployed: {deployed.address}")
        if step.symbol:
            balance = instance.balanceOf(step.sender.address)
            print(f"Admin {step.sender.address} has {format_token_amount(balance)} {step.symbol}")
        return deployed

    def grant(self, step: RoleGrant, deployments: DeploymentResult) -> ReceiptAPI:
        target = deployments[step.contract].instance
        grantee = step.resolve_grantee(deployments)
        if step.role:
            role_id = getattr(target, step.role)()
            method = getattr(target, ROLE_GRANT_METHOD)
            return self.transact(method, role_id, grantee, sender=step.sender)
        method = getattr(target, step.method)
        return self.transact(method, grantee, sender=step.sender)

    def run(self) -> DeploymentResult:
        self._print_deployment_info()
        deployments = DeploymentResult()
        for position, step in enumerate(self.plan.steps, start=1):
            try:
                step.execute(self, deployments)
            except BaseException:
                # declined prompts and interrupts report partial state too
                self._print_abort(position, step, deployments)
                raise
        self._print_addresses(deployments)
        return deployments

    def finalize(self, deployments: DeploymentResult, registry_filepath: Path, chain_id: int):
        """Publishes the deployed addresses to a registry file."""
        return registry_from_deployments(
            deployments=list(deployments),
            chain_id=chain_id,
            output_filepath=registry_filepath,
        )

    def _print_deployment_info(self):
        variant = "upgradeable" if self.plan.upgradeable else "plain"
        print(
            f"Plan: {self.plan.name or self.path}",
            f"Variant: {variant}",
            f"Steps: {len(self.plan.steps)}",
            *(f"Role {role}: {account.address}" for role, account in self.plan.roles.items()),
            sep="\n",
        )
        if not self._autosign:
            # Confirms the start of the deployment.
            _continue()

    def _print_abort(self, position: int, step, deployments: DeploymentResult):
        print(f"\n! Deployment aborted at step #{position} ({step.name}).")
        if not len(deployments):
            print("No contracts were deployed.")
            return
        print("Contracts already deployed (not rolled back):")
        for deployed in deployments:
            print(f"\t{deployed.name} ({deployed.contract_type}) at {deployed.address}")

    def _print_addresses(self, deployments: DeploymentResult):
        print("\nDeployed contracts:")
        for deployed in deployments:
            print(
                f"\t{deployed.name} ({deployed.contract_type}, {deployed.variant}): "
                f"{deployed.address}"
            )
