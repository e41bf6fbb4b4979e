#!/usr/bin/python3

import sys

from ape import accounts

from deployment.constants import TOKEN_FARM_PARAMS_FILEPATH
from deployment.farm import run
from deployment.networks import is_local_network
from deployment.params import Deployer

VERIFY = False


def _get_deployer() -> Deployer:
    """
    On local networks the first test account signs everything automatically;
    on live networks the operator picks an account and confirms every step.
    """
    if is_local_network():
        return Deployer.from_yaml(
            filepath=TOKEN_FARM_PARAMS_FILEPATH,
            verify=False,
            account=accounts.test_accounts[0],
            autosign=True,
        )
    return Deployer.from_yaml(filepath=TOKEN_FARM_PARAMS_FILEPATH, verify=VERIFY)


def main():
    """
    Deploys DAppToken, LPToken and TokenFarm and transfers DAppToken ownership
    to TokenFarm.

    ape run deploy_token_farm --network ethereum:local:test
    """
    sys.exit(run(_get_deployer))
