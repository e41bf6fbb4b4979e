from ape import networks

from deployment.constants import LOCAL_BLOCKCHAIN_ENVIRONMENTS


def is_local_network() -> bool:
    """Returns True if the connected provider is on a local development network."""
    return networks.provider.network.name in LOCAL_BLOCKCHAIN_ENVIRONMENTS
