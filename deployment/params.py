import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, List

from ape import networks
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance, ContractTransactionHandler
from ape.exceptions import ApeException
from ape.utils import ZERO_ADDRESS
from ethpm_types import MethodABI
from web3 import Web3

from deployment.confirm import _confirm_resolution, _continue
from deployment.constants import UNAUTHORIZED_REVERT_MARKERS
from deployment.registry import registry_from_ape_deployments
from deployment.utils import (
    _load_yaml,
    check_plugins,
    get_contract_container,
    validate_config,
    verify_contracts,
)

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"

w3 = Web3()


class DeploymentError(Exception):
    """Raised when a contract deployment is rejected, reverts or is not confirmed."""


class TransactionError(Exception):
    """Raised when a transaction against a deployed contract is rejected or reverts."""


class AuthorizationError(TransactionError):
    """Raised when the sender is not permitted to call a guarded contract method."""


def _is_unauthorized(error: Exception) -> bool:
    """Returns True if the error is a revert caused by a missing permission."""
    # ape raises decoded custom errors as exception classes named after the error
    message = f"{type(error).__name__} {getattr(error, 'revert_message', None) or error}"
    return any(marker in message for marker in UNAUTHORIZED_REVERT_MARKERS)


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
        deployments: typing.Dict[str, ContractInstance] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()
        self.deployments = deployments if deployments is not None else dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self) -> Any:
        deployer_account = Deployer.get_account()
        if deployer_account is None:
            return ZERO_ADDRESS
        return deployer_account.address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise ValueError(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self) -> Any:
        return self.constant_value


class ContractName(Variable):
    """
    The address of a contract deployed earlier in the same run.

    Before the referenced contract is deployed it resolves to the zero address
    so that parameters can be validated eagerly against the constructor ABI.
    """

    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise ValueError(f"Contract name {contract_name} not found")
        if contract_name == context.contract_name:
            raise ValueError(f"Contract {contract_name} cannot reference its own address")

        self.contract_name = contract_name
        self._deployments = context.deployments

    @property
    def is_deployed(self) -> bool:
        return self.contract_name in self._deployments

    def resolve(self) -> Any:
        """Resolves a contract address."""
        if not self.is_deployed:
            return ZERO_ADDRESS
        return self._deployments[self.contract_name].address


def _resolve_param(value: Any) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v) for v in value]

    if isinstance(value, Variable):
        return value.resolve()

    return value  # literally a value


def _resolve_params(parameters: OrderedDict) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value)

    return resolved_parameters


def _undeployed_dependencies(value: Any) -> List[str]:
    """Returns the names of referenced contracts that are not deployed yet."""
    if isinstance(value, list):
        return [name for v in value for name in _undeployed_dependencies(v)]
    if isinstance(value, ContractName) and not value.is_deployed:
        return [value.contract_name]
    return []


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable.strip(Variable.VARIABLE_PREFIX)
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: OrderedDict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        elif isinstance(contract_info, dict):
            contract_names.extend(list(contract_info.keys()))
        else:
            raise ValueError("Malformed constructor parameters YAML.")

    return contract_names


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


def _validate_constructor_abi_inputs(
    contract_name: str,
    abi_inputs: List[Any],
    resolved_parameters: OrderedDict,
) -> None:
    """Validates the constructor parameters against the constructor ABI."""
    if len(resolved_parameters) != len(abi_inputs):
        raise ConstructorParameters.Invalid(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(resolved_parameters)}."
        )
    if not abi_inputs:
        return  # no constructor parameters

    codex = enumerate(zip(abi_inputs, resolved_parameters.items()), start=0)
    for position, (abi_input, resolved_input) in codex:
        name, value = resolved_input
        # validate name
        if abi_input.name != name:
            raise ConstructorParameters.Invalid(
                f"{contract_name} constructor parameter '{name}' at position {position} does not "
                f"match the expected ABI name '{abi_input.name}'."
            )

        # validate value type
        if not w3.is_encodable(abi_input.type, value):
            raise ConstructorParameters.Invalid(
                f"Constructor param name '{name}' at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{abi_input.type}'"
            )


def validate_constructor_parameters(contracts_parameters) -> None:
    """Validates the constructor parameters for all contracts in a single config."""
    for contract, parameters in contracts_parameters.items():
        if not isinstance(parameters, dict):
            # this can happen if the yml file is malformed
            raise ValueError(f"Malformed constructor parameter config for {contract}.")

        resolved_parameters = _resolve_params(parameters=parameters)
        contract_container = get_contract_container(contract)
        _validate_constructor_abi_inputs(
            contract_name=contract,
            abi_inputs=contract_container.constructor.abi.inputs,
            resolved_parameters=resolved_parameters,
        )


class ConstructorParameters:
    """Represents the constructor parameters for a set of contracts."""

    class Invalid(Exception):
        """Raised when the constructor parameters are invalid"""

    def __init__(self, parameters: OrderedDict):
        self.parameters = parameters
        validate_constructor_parameters(parameters)

    @classmethod
    def from_config(
        cls, config: typing.Dict, deployments: typing.Dict[str, ContractInstance] = None
    ) -> "ConstructorParameters":
        """Loads the constructor parameters from a parsed params file."""
        print("Processing contract constructor parameters...")
        contracts_config = OrderedDict()
        contract_names = _get_contract_names(config)
        constants = config.get("constants")
        for contract_info in config["contracts"]:
            if isinstance(contract_info, str):
                contract_constructor_params = {contract_info: OrderedDict()}
            elif isinstance(contract_info, dict):
                if len(contract_info) != 1:
                    raise ValueError("Malformed constructor parameters YAML.")

                contract_name = list(contract_info.keys())[0]  # only one entry
                contract_data = contract_info[contract_name] or dict()
                parameter_values = OrderedDict()
                if CONTRACT_CONSTRUCTOR_PARAMETER_KEY in contract_data:
                    parameter_values = _process_raw_values(
                        contract_data[CONTRACT_CONSTRUCTOR_PARAMETER_KEY],
                        VariableContext(
                            contract_names=contract_names,
                            contract_name=contract_name,
                            constants=constants,
                            deployments=deployments,
                        ),
                    )
                contract_constructor_params = {contract_name: parameter_values}
            else:
                raise ValueError("Malformed constructor parameters YAML.")
            contracts_config.update(contract_constructor_params)

        return cls(parameters=contracts_config)

    def resolve(self, contract_name: str) -> OrderedDict:
        """
        Resolves the constructor parameters for a single contract.
        Every contract it references must already be deployed.
        """
        try:
            parameters = self.parameters[contract_name]
        except KeyError:
            raise ValueError(f"No constructor parameters configured for {contract_name}.")

        missing = [
            name for value in parameters.values() for name in _undeployed_dependencies(value)
        ]
        if missing:
            raise DeploymentError(
                f"Cannot deploy {contract_name} before {', '.join(missing)} "
                f"{'is' if len(missing) == 1 else 'are'} deployed."
            )
        return _resolve_params(parameters)


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.
    """

    def __init__(self, account: typing.Optional[AccountAPI] = None, autosign: bool = False):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        contract_name = method.contract.contract_type.name
        base_message = f"\nTransacting {contract_name}[{method.contract.address[:10]}].{method}"
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        try:
            return method(*args, sender=self._account)
        except ApeException as e:
            if _is_unauthorized(e):
                raise AuthorizationError(
                    f"{self._account.address} is not authorized to call "
                    f"{contract_name}.{method.abis[0].name}: {e}"
                ) from e
            raise TransactionError(
                f"{contract_name}.{method.abis[0].name} transaction failed: {e}"
            ) from e


class Deployer(Transactor):
    """
    Represents an ape account plus
    deployment parameters for a set of contracts, plus validated/annotated execution.
    """

    __DEPLOYER_ACCOUNT: AccountAPI = None

    def __init__(
        self,
        config: typing.Dict,
        path: Path,
        verify: bool,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
    ):
        super().__init__(account, autosign)
        self._set_account(self._account)

        check_plugins(verify=verify)
        self.path = path
        self.config = config
        self.verify = verify
        self.registry_filepath = validate_config(config=self.config)

        # contracts deployed by this deployer, in deployment order
        self.deployments = OrderedDict()
        self.constructor_parameters = ConstructorParameters.from_config(
            self.config, deployments=self.deployments
        )

        self._print_deployment_info()

        if not self._autosign:
            # Confirms the start of the deployment.
            _continue()

    @classmethod
    def from_yaml(cls, filepath: Path, *args, **kwargs) -> "Deployer":
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath, *args, **kwargs)

    @classmethod
    def get_account(cls) -> AccountAPI:
        """Returns the deployer account."""
        return cls.__DEPLOYER_ACCOUNT

    @classmethod
    def _set_account(cls, deployer: AccountAPI) -> None:
        """Sets the deployer account."""
        cls.__DEPLOYER_ACCOUNT = deployer

    def deploy(self, container: ContractContainer) -> ContractInstance:
        contract_name = container.contract_type.name
        resolved_params = self.constructor_parameters.resolve(contract_name)
        if not self._autosign:
            _confirm_resolution(resolved_params, contract_name)

        try:
            instance = self._account.deploy(container, *resolved_params.values())
        except ApeException as e:
            raise DeploymentError(f"{contract_name} deployment failed: {e}") from e

        self.deployments[contract_name] = instance
        return instance

    def finalize(self, deployments: List[ContractInstance]) -> None:
        """
        Publishes the deployments to the registry and optionally to block explorers.
        """
        registry_from_ape_deployments(
            deployments=deployments,
            output_filepath=self.registry_filepath,
        )
        if self.verify:
            verify_contracts(contracts=deployments)

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_account().address}",
            f"Config: {self.path}",
            f"Registry: {self.registry_filepath}",
            f"Verify: {self.verify}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            f"Gas Price: {networks.provider.gas_price}",
            sep="\n",
        )
