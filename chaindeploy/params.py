"""
Deployment plans: an ordered list of contracts with their sources, linked
libraries and constructor parameters, loaded from YAML.

    deployment:
      name: sepolia
      chain_id: 11155111
    constants:
      ADMIN: "0xA62c64Ec38d4b280192acE99ddFee60768C51562"
    contracts:
      - MedianAggregator:
          source: src/aggregator/MedianAggregator.sol
      - AlloraAdapter:
          source: src/AlloraAdapter.sol
          constructor:
            adapterArgs:
              admin: $ADMIN
              aggregator: $MedianAggregator

Parameter values starting with ``$`` are variables: ``$deployer`` is the
signer's address, ``$UPPER_CASE`` names a constant, and anything else names a
contract earlier in the plan whose recorded address is substituted at
deployment time.
"""

import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional

from chaindeploy.constants import DEPLOYER_VARIABLE, VARIABLE_PREFIX
from chaindeploy.exceptions import DependencyNotDeployedError, PlanError
from chaindeploy.registry import ContractRegistration, ContractRegistry
from chaindeploy.utils import _load_yaml

CONTRACT_SOURCE_KEY = "source"
CONTRACT_LIBRARIES_KEY = "libraries"
CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    @abstractmethod
    def resolve(self, deployer) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        return isinstance(param, str) and param.startswith(VARIABLE_PREFIX)


class DeployerAccount(Variable):
    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == DEPLOYER_VARIABLE

    def resolve(self, deployer) -> Any:
        return deployer.get_account()


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise PlanError(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, deployer) -> Any:
        return self.constant_value


class ContractAddress(Variable):
    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise PlanError(f"Contract name {contract_name} not found")
        if contract_name == context.contract_name:
            raise PlanError(f"{contract_name} cannot take its own address as a parameter")
        self.contract_name = contract_name

    def resolve(self, deployer) -> Any:
        """Resolves a contract address from the deployment record."""
        address = deployer.get_address(self.contract_name)
        if address is None:
            raise DependencyNotDeployedError(
                f"{self.contract_name} must be deployed before it can be used as a parameter"
            )
        return address

    def __repr__(self) -> str:
        return f"{VARIABLE_PREFIX}{self.contract_name}"


def _resolve_param(value: Any, deployer) -> Any:
    """Resolves a single parameter value, a list or a struct of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, deployer) for v in value]

    if isinstance(value, dict):
        return OrderedDict((k, _resolve_param(v, deployer)) for k, v in value.items())

    if isinstance(value, Variable):
        return value.resolve(deployer)

    return value  # literally a value


def _resolve_params(parameters: OrderedDict, deployer) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value, deployer)

    return resolved_parameters


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractAddress(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if isinstance(value, dict):
        return OrderedDict(
            (k, _process_raw_value(v, variable_context)) for k, v in value.items()
        )

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: Dict, variable_context: VariableContext) -> OrderedDict:
    if not isinstance(values, dict):
        raise PlanError(
            f"Constructor parameters for {variable_context.contract_name} must be a mapping."
        )
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _get_contract_entries(config: typing.Dict) -> List[typing.Tuple[str, Dict]]:
    contracts = config.get("contracts")
    if not contracts:
        raise PlanError("Deployment plan missing 'contracts' field.")

    entries = list()
    for contract_info in contracts:
        if not isinstance(contract_info, dict) or len(contract_info) != 1:
            raise PlanError("Malformed deployment plan YAML.")
        contract_name = list(contract_info.keys())[0]  # only one entry
        contract_data = contract_info[contract_name] or dict()
        if not isinstance(contract_data, dict) or CONTRACT_SOURCE_KEY not in contract_data:
            raise PlanError(f"Contract {contract_name} must declare a '{CONTRACT_SOURCE_KEY}'.")
        entries.append((contract_name, contract_data))
    return entries


class DeploymentPlan:
    """Represents the ordered contracts and constructor parameters of one deployment."""

    def __init__(
        self,
        registry: ContractRegistry,
        parameters: OrderedDict,
        name: Optional[str] = None,
        chain_id: Optional[int] = None,
        constants: Optional[Dict[str, Any]] = None,
    ):
        self.registry = registry
        self.parameters = parameters
        self.name = name
        self.chain_id = chain_id
        self.constants = constants or dict()

    @classmethod
    def from_config(cls, config: typing.Dict) -> "DeploymentPlan":
        if not isinstance(config, dict):
            raise PlanError("Deployment plan must be a mapping.")

        deployment = config.get("deployment") or dict()
        chain_id = deployment.get("chain_id")
        if chain_id is not None:
            try:
                chain_id = int(chain_id)
            except (TypeError, ValueError):
                raise PlanError(f"chain_id must be an integer, got {chain_id!r}")

        constants = config.get("constants") or dict()
        entries = _get_contract_entries(config)
        contract_names = [contract_name for contract_name, _ in entries]

        registrations = list()
        parameters = OrderedDict()
        for contract_name, contract_data in entries:
            registrations.append(
                ContractRegistration(
                    name=contract_name,
                    source=contract_data[CONTRACT_SOURCE_KEY],
                    libraries=tuple(contract_data.get(CONTRACT_LIBRARIES_KEY) or ()),
                )
            )
            parameters[contract_name] = _process_raw_values(
                contract_data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY) or dict(),
                VariableContext(
                    contract_names=contract_names,
                    contract_name=contract_name,
                    constants=constants,
                ),
            )

        try:
            registry = ContractRegistry(registrations)
        except ValueError as e:
            raise PlanError(str(e)) from e

        return cls(
            registry=registry,
            parameters=parameters,
            name=deployment.get("name"),
            chain_id=chain_id,
            constants=constants,
        )

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploymentPlan":
        print(f"Processing deployment plan {filepath}...")
        return cls.from_config(_load_yaml(filepath))

    def contract_names(self) -> List[str]:
        return list(self.parameters)

    def check_chain_id(self, chain_id: int) -> None:
        if self.chain_id is not None and self.chain_id != chain_id:
            raise PlanError(
                f"chain_id in deployment plan ({self.chain_id}) does not match "
                f"configured chain_id ({chain_id})."
            )

    def resolve(self, contract_name: str, deployer) -> OrderedDict:
        """Resolves the constructor parameters for a single contract."""
        try:
            parameters = self.parameters[contract_name]
        except KeyError:
            raise PlanError(f"Contract {contract_name} is not part of the deployment plan")
        return _resolve_params(parameters, deployer)

    def constructor_args(self, contract_name: str, deployer) -> List[Any]:
        return list(self.resolve(contract_name, deployer).values())

    def execute(self, deployer) -> Dict[str, Any]:
        """Deploys every contract of the plan, in order."""
        deployments = OrderedDict()
        for contract_name in self.parameters:
            constructor_args = self.constructor_args(contract_name, deployer)
            deployments[contract_name] = deployer.deploy(contract_name, constructor_args)
        return deployments
