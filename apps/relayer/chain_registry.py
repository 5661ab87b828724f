from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import get_settings
from .environment import ConfigError, EnvironmentContext
from .schemas import ChainDescriptor, ChainFile, parse_document

LOGGER = logging.getLogger('relayer.chain_registry')

# Sharded runs pin each container to a single chain.
CONTAINER_OPERATING_CHAINS: dict[str, list[int]] = {
    'evm1': [2],
    'evm2': [4]
}


@dataclass(frozen=True)
class OperationDescriptor:
    # Transactions are signed for these chains.
    operating_chains: tuple[ChainDescriptor, ...]
    # Deployment artifacts exist for these chains; used for cross registration
    # and sanity checks. Never overlaps operating_chains.
    supported_chains: tuple[ChainDescriptor, ...]


class ChainRegistry:
    def __init__(self, context: EnvironmentContext) -> None:
        self.context = context

    def read_chains(self) -> ChainFile:
        path = self.context.config_path('chains.json')
        return parse_document(ChainFile, self.context.read_json(path), path)

    def load_chains(self) -> list[ChainDescriptor]:
        chains = self.read_chains().chains
        if chains is None:
            raise ConfigError("Couldn't find chain information!")
        return chains

    def get_chain(self, chain_id: int) -> ChainDescriptor:
        for chain in self.load_chains():
            if chain.chain_id == chain_id:
                return chain
        raise ConfigError('Bad chain ID')

    def load_guardian_set_index(self) -> int:
        index = self.read_chains().guardian_set_index
        if index is None:
            raise ConfigError('Failed to pull guardian set index from the chains file!')
        return index

    def resolve_operating_chain_ids(self) -> list[int] | None:
        declared = self.read_chains().operating_chains
        if declared is not None:
            return list(declared)

        container = get_settings().container
        if container in CONTAINER_OPERATING_CHAINS:
            LOGGER.debug('operating chains pinned by container=%s', container)
            return list(CONTAINER_OPERATING_CHAINS[container])

        return None

    def get_operation_descriptor(self) -> OperationDescriptor:
        all_chains = self.load_chains()
        operating_ids = self.resolve_operating_chain_ids()

        if operating_ids is None:
            return OperationDescriptor(operating_chains=tuple(all_chains), supported_chains=())

        wanted = set(operating_ids)
        operating: list[ChainDescriptor] = []
        supported: list[ChainDescriptor] = []
        for chain in all_chains:
            if chain.chain_id in wanted:
                operating.append(chain)
            else:
                supported.append(chain)

        LOGGER.info(
            'operation descriptor env=%s operating=%s supported=%s',
            self.context.name,
            [chain.chain_id for chain in operating],
            [chain.chain_id for chain in supported]
        )
        return OperationDescriptor(operating_chains=tuple(operating), supported_chains=tuple(supported))

    def get_operating_chains(self) -> list[ChainDescriptor]:
        all_chains = self.load_chains()
        operating_ids = self.resolve_operating_chain_ids()

        if operating_ids is None:
            return all_chains

        wanted = set(operating_ids)
        return [chain for chain in all_chains if chain.chain_id in wanted]
