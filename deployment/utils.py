import json
import os
from pathlib import Path
from typing import Dict, List

import yaml
from ape import networks, project
from ape.contracts import ContractContainer, ContractInstance

from deployment.constants import ARTIFACTS_DIR
from deployment.networks import is_local_network


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the artifact file."""
    artifact_config = config.get("artifacts", {})
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in params file.")
    return artifact_dir / filename


def validate_config(config: Dict) -> Path:
    """
    Checks that the params file is complete and, for live networks, that it targets
    the connected chain and that the deployment has not already been published for
    the chain_id specified in the params file.
    """
    print("Validating parameters YAML...")

    deployment = config.get("deployment")
    if not deployment:
        raise ValueError("deployment is not set in params file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise ValueError("chain_id is not set in params file.")

    contracts = config.get("contracts")
    if not contracts:
        raise ValueError("Constructor parameters file missing 'contracts' field.")

    registry_filepath = get_artifact_filepath(config=config)
    if is_local_network():
        # local chains are disposable; redeploying over them is expected
        return registry_filepath

    config_chain_id = int(config_chain_id)
    connected_chain_id = networks.provider.network.chain_id
    if config_chain_id != connected_chain_id:
        raise ValueError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current network ({connected_chain_id})."
        )

    if not registry_filepath.exists():
        return registry_filepath

    registry_chain_ids = map(int, _load_json(registry_filepath).keys())
    if config_chain_id in registry_chain_ids:
        raise ValueError(f"Deployment is already published for chain_id {config_chain_id}.")

    return registry_filepath


def _require_api_key(envvars: List[str], service: str) -> None:
    if not any(os.environ.get(envvar) for envvar in envvars):
        raise ValueError(f"No {service} API key found; set one of: {', '.join(envvars)}")


def check_etherscan_plugin() -> None:
    """Explorer verification needs ape-etherscan and the ecosystem's explorer API key."""
    try:
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to verify contracts.")
    ecosystem_name = networks.provider.network.ecosystem.name
    envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    if not envvar:
        raise ValueError(f"Contract verification is not supported on {ecosystem_name}.")
    _require_api_key([envvar], service="block explorer")


def check_infura_plugin() -> None:
    """Infura-backed providers need an Infura project key in the environment."""
    if networks.provider.name != "infura":
        return
    try:
        from ape_infura.provider import _ENVIRONMENT_VARIABLE_NAMES
    except ImportError:
        raise ImportError("Please install the ape-infura plugin to use the infura provider.")
    _require_api_key(list(_ENVIRONMENT_VARIABLE_NAMES), service="Infura")


def check_plugins(verify: bool = False) -> None:
    """Pre-flight checks for live networks; local deployments need no plugins."""
    if is_local_network():
        return
    print("Checking plugins...")
    if verify:
        check_etherscan_plugin()
    check_infura_plugin()


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name} at {instance.address}...")
        explorer.publish_contract(instance.address)


def get_contract_container(contract: str) -> ContractContainer:
    """Returns the compiled project contract with the given name."""
    try:
        return getattr(project, contract)
    except AttributeError:
        raise ValueError(
            f"No contract named '{contract}' in the project; "
            "its source is expected in the contracts/ folder."
        )


def get_chain_name(chain_id: int) -> str:
    """Returns '<ecosystem> <network>' for the given chain ID."""
    for ecosystem_name, ecosystem in networks.ecosystems.items():
        for network_name, network in ecosystem.networks.items():
            if network.chain_id == chain_id:
                return f"{ecosystem_name} {network_name}"
    raise ValueError(f"Chain ID {chain_id} not found in networks.")
