import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, List, Mapping

from deployment.roles import RoleMap


class InvalidVariable(ValueError):
    """Raised when a plan variable cannot be resolved"""


class VariableContext:
    def __init__(
        self,
        step_name: str,
        available_contracts: typing.Sequence[str],
        declared_contracts: typing.Sequence[str],
        roles: RoleMap,
        constants: typing.Dict[str, Any] = None,
    ):
        self.step_name = step_name
        self.available_contracts = list(available_contracts)
        self.declared_contracts = list(declared_contracts)
        self.roles = roles
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, deployments: Mapping[str, Any]) -> Any:
        raise NotImplementedError

    @property
    def references(self) -> List[str]:
        """Logical contract names this variable depends on."""
        return []

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise InvalidVariable(f"Constant '{constant_name}' not found in plan file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a plan constant."""
        return value.isupper()

    def resolve(self, deployments: Mapping[str, Any]) -> Any:
        return self.constant_value


class RoleAccount(Variable):
    def __init__(self, role: str, context: VariableContext):
        self.role = role
        self.account = context.roles[role]

    def resolve(self, deployments: Mapping[str, Any]) -> Any:
        return self.account.address


class ContractAddress(Variable):
    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.declared_contracts:
            raise InvalidVariable(f"Contract name {contract_name} not found")
        if contract_name not in context.available_contracts:
            raise InvalidVariable(
                f"{context.step_name} references {contract_name} before it is deployed"
            )
        self.contract_name = contract_name

    @property
    def references(self) -> List[str]:
        return [self.contract_name]

    def resolve(self, deployments: Mapping[str, Any]) -> Any:
        try:
            return deployments[self.contract_name].address
        except KeyError:
            raise InvalidVariable(f"{self.contract_name} has no deployed address yet")


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if variable in context.declared_contracts:
        if variable in context.roles or variable in context.constants:
            raise InvalidVariable(
                f"'{variable}' is ambiguous - it names a contract and a role or constant."
            )
        return ContractAddress(variable, context)
    elif variable in context.roles:
        return RoleAccount(variable, context)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractAddress(variable, context)


def _process_raw_value(value: Any, context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, context)

    return value


def _process_raw_values(values: Any, context: VariableContext) -> OrderedDict:
    """Processes a list or name->value mapping of raw arguments."""
    if values is None:
        values = OrderedDict()
    if isinstance(values, list):
        values = OrderedDict((f"arg{position}", v) for position, v in enumerate(values))
    if not isinstance(values, dict):
        raise InvalidVariable(f"Malformed arguments for {context.step_name}: {values}")

    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, context)
    return processed_parameters


def _resolve_param(value: Any, deployments: Mapping[str, Any]) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, deployments) for v in value]

    if isinstance(value, Variable):
        return value.resolve(deployments)

    return value  # literally a value


def _resolve_params(parameters: OrderedDict, deployments: Mapping[str, Any]) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value, deployments)

    return resolved_parameters


def _references(value: Any) -> List[str]:
    if isinstance(value, list):
        return [name for v in value for name in _references(v)]
    if isinstance(value, dict):
        return [name for v in value.values() for name in _references(v)]
    if isinstance(value, Variable):
        return value.references
    return []
