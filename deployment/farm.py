"""
Token farm deployment.

Deploys the DApp token, the LP token and the token farm, in that order, then hands
ownership of the DApp token to the farm so that it can mint rewards. Every step is
a confirmed on-chain transaction; a failure stops the sequence without undoing the
steps that already succeeded.
"""

import sys
import typing
from typing import Callable

from ape.contracts import ContractInstance

from deployment.constants import (
    BANNER_WIDTH,
    CONTRACT_LABELS,
    DAPP_TOKEN,
    EXIT_FAILURE,
    EXIT_SUCCESS,
    FARM_CONTRACTS,
    OWNERSHIP_TRANSFER_METHOD,
    TOKEN_FARM,
)
from deployment.params import Deployer
from deployment.utils import get_contract_container


class FarmDeployment(typing.NamedTuple):
    """The farm contracts, in deployment order."""

    dapp_token: ContractInstance
    lp_token: ContractInstance
    token_farm: ContractInstance

    def addresses(self) -> typing.Dict[str, str]:
        return {name: instance.address for name, instance in zip(FARM_CONTRACTS, self)}


def _deploy_step(deployer: Deployer, contract_name: str) -> ContractInstance:
    print(f"\nDeploying {contract_name}...")
    instance = deployer.deploy(get_contract_container(contract_name))
    print(f"{contract_name} deployed to: {instance.address}")
    return instance


def deploy_farm(deployer: Deployer) -> FarmDeployment:
    """Deploys the farm contracts and transfers the DApp token ownership to the farm."""
    print("Starting deployment...")

    # one at a time, in order; the farm constructor takes both token addresses
    dapp_token, lp_token, token_farm = [
        _deploy_step(deployer, contract_name) for contract_name in FARM_CONTRACTS
    ]

    print(f"\nTransferring {DAPP_TOKEN} ownership to {TOKEN_FARM}...")
    ownership_transfer = getattr(dapp_token, OWNERSHIP_TRANSFER_METHOD)
    deployer.transact(ownership_transfer, token_farm.address)
    print("Ownership transferred successfully")

    return FarmDeployment(dapp_token=dapp_token, lp_token=lp_token, token_farm=token_farm)


def print_report(farm: FarmDeployment) -> None:
    print("\nDEPLOYMENT COMPLETE!")
    print("=" * BANNER_WIDTH)
    print("Contract Addresses:")
    for contract_name, address in farm.addresses().items():
        print(f"{CONTRACT_LABELS[contract_name]}: {address}")
    print("=" * BANNER_WIDTH)


def run(deployer_factory: Callable[[], Deployer]) -> int:
    """
    Runs the whole deployment and returns the process exit code.

    Any failure is reported once, here; nothing that already reached the chain
    is rolled back.
    """
    try:
        deployer = deployer_factory()
        farm = deploy_farm(deployer)
        deployer.finalize(deployments=list(farm))
        print_report(farm)
    except Exception as e:
        print(f"Deployment failed: {type(e).__name__}: {e}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_SUCCESS
