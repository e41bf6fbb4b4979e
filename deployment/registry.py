import json
from collections import defaultdict
from pathlib import Path
from typing import List, NamedTuple

from ape.contracts import ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from eth_typing import ABI

from deployment.utils import _load_json

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single deployed contract in the farm registry."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str


def _get_abi(contract_instance: ContractInstance) -> ABI:
    """Returns the ABI of a contract instance."""
    contract_abi = list()
    for entry in contract_instance.contract_type.abi:
        contract_abi.append(entry.model_dump(mode="json", by_alias=True))
    return contract_abi


def _get_entry(contract_instance: ContractInstance) -> RegistryEntry:
    receipt = contract_instance.receipt
    return RegistryEntry(
        name=contract_instance.contract_type.name,
        address=to_checksum_address(contract_instance.address),
        abi=_get_abi(contract_instance),
        chain_id=receipt.chain_id,
        tx_hash=receipt.txn_hash,
        block_number=receipt.block_number,
        deployer=receipt.transaction.sender,
    )


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                abi=artifacts["abi"],
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts["block_number"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path) -> Path:
    """
    Writes registry entries to a file, keyed by chain id then contract name.
    Chains already present in an existing file are never overwritten; the new
    data goes to a sibling '.unmerged.json' file instead.
    """
    if not entries:
        print("No entries provided.")
        return filepath

    data = defaultdict(dict)
    for entry in sorted(entries, key=lambda e: (str(e.chain_id), e.name)):
        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": sorted(entry.abi, key=lambda d: (d["type"], d.get("name", ""))),
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }

    filepath.parent.mkdir(parents=True, exist_ok=True)

    if not filepath.exists():
        print(f"Creating new registry at {filepath}.")
    else:
        existing_data = _load_json(filepath)
        overlapping = sorted(set(existing_data) & set(data))
        if overlapping:
            filepath = filepath.with_suffix(".unmerged.json")
            print(
                f"Registry already has entries for chain ID(s) {', '.join(overlapping)}; "
                f"writing to {filepath} instead."
            )
        else:
            print(f"Adding chain ID(s) {', '.join(data)} to registry at {filepath}.")
            existing_data.update(data)
            data = existing_data

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_ape_deployments(
    deployments: List[ContractInstance], output_filepath: Path
) -> Path:
    """Publishes ape deployments to the registry at the given path."""
    entries = [_get_entry(instance) for instance in deployments]
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath
