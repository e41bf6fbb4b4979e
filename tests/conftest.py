from collections import OrderedDict
from pathlib import Path
from types import SimpleNamespace

import pytest

from deployment import farm, params
from deployment.constants import DAPP_TOKEN, LP_TOKEN, TOKEN_FARM, TOKEN_FARM_PARAMS_FILEPATH
from deployment.params import Deployer
from deployment.utils import _load_yaml

# Common constants
ADMIN = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
DEPLOYER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

DAPP_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000001"
LP_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000002"
TOKEN_FARM_ADDRESS = "0x0000000000000000000000000000000000000003"

FARM_ADDRESSES = {
    DAPP_TOKEN: DAPP_TOKEN_ADDRESS,
    LP_TOKEN: LP_TOKEN_ADDRESS,
    TOKEN_FARM: TOKEN_FARM_ADDRESS,
}


# Utility functions
def abi_input(name, type_="address"):
    return SimpleNamespace(name=name, type=type_)


CONSTRUCTOR_INPUTS = {
    DAPP_TOKEN: [abi_input("initialOwner")],
    LP_TOKEN: [abi_input("initialOwner")],
    TOKEN_FARM: [abi_input("_dappToken"), abi_input("_lpToken")],
}


def fake_container(contract_name):
    return SimpleNamespace(
        contract_type=SimpleNamespace(name=contract_name),
        constructor=SimpleNamespace(abi=SimpleNamespace(inputs=CONSTRUCTOR_INPUTS[contract_name])),
    )


class FakeTransactionHandler:
    """Stands in for an ape ContractTransactionHandler."""

    def __init__(self, contract, name, inputs, error=None):
        self.contract = contract
        self.abis = [SimpleNamespace(name=name, inputs=inputs)]
        self.error = error
        self.calls = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        if self.error:
            raise self.error
        return SimpleNamespace(txn_hash="0xfeed")

    def __str__(self):
        return self.abis[0].name


def fake_instance(contract_name, address, transfer_error=None):
    instance = SimpleNamespace(address=address, contract_type=SimpleNamespace(name=contract_name))
    instance.transferOwnership = FakeTransactionHandler(
        instance, "transferOwnership", [abi_input("newOwner")], error=transfer_error
    )
    return instance


class FakeAccount:
    """Stands in for an ape account; records every deployment it is asked to make."""

    address = DEPLOYER_ADDRESS

    def __init__(self, addresses=None, failures=None, transfer_error=None):
        self.addresses = addresses or FARM_ADDRESSES
        self.failures = failures or dict()
        self.transfer_error = transfer_error
        self.autosign = None
        self.deployed = list()
        self.instances = OrderedDict()

    def set_autosign(self, enabled):
        self.autosign = enabled

    def deploy(self, container, *args, **kwargs):
        contract_name = container.contract_type.name
        self.deployed.append((contract_name, args))
        if contract_name in self.failures:
            raise self.failures[contract_name]
        instance = fake_instance(
            contract_name, self.addresses[contract_name], transfer_error=self.transfer_error
        )
        self.instances[contract_name] = instance
        return instance


# Fixtures
@pytest.fixture(autouse=True)
def reset_deployer_account():
    """The deployer account is class-level state; keep it from leaking between tests."""
    Deployer._set_account(None)
    yield
    Deployer._set_account(None)


@pytest.fixture
def farm_config():
    return _load_yaml(TOKEN_FARM_PARAMS_FILEPATH)


@pytest.fixture
def registry_filepath(tmp_path):
    return tmp_path / "artifacts" / "token-farm.json"


@pytest.fixture
def offline(monkeypatch, registry_filepath):
    """Detaches the deployer from the network and the compiled project."""
    monkeypatch.setattr(params, "check_plugins", lambda verify=False: None)
    monkeypatch.setattr(params, "validate_config", lambda config: registry_filepath)
    monkeypatch.setattr(params, "get_contract_container", fake_container)
    monkeypatch.setattr(farm, "get_contract_container", fake_container)
    monkeypatch.setattr(Deployer, "_print_deployment_info", lambda self: None)


@pytest.fixture
def account():
    return FakeAccount()


@pytest.fixture
def make_deployer(reset_deployer_account, offline, farm_config):
    def _make_deployer(account, config=None, autosign=True):
        return Deployer(
            config=config or farm_config,
            path=Path("token-farm.yml"),
            verify=False,
            account=account,
            autosign=autosign,
        )

    return _make_deployer


@pytest.fixture
def deployer(make_deployer, account):
    return make_deployer(account)
