from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from .config import get_settings
from .environment import ConfigError, EnvironmentContext
from .run_log import RunLogWriter
from .schemas import ChainDescriptor, ContractsFile, Deployment, parse_deployments, parse_document

LOGGER = logging.getLogger('relayer.artifacts')

ContractT = TypeVar('ContractT')


@dataclass(frozen=True)
class ContractFamily:
    key: str
    label: str
    static_field: str
    process_name: str
    last_run_field: str
    dev_static_field: str | None = None


DELIVERY_PROVIDER = ContractFamily(
    key='delivery_provider',
    label='DeliveryProvider',
    static_field='deliveryProviders',
    process_name='deployDeliveryProvider',
    last_run_field='deliveryProviderProxies'
)
WORMHOLE_RELAYER = ContractFamily(
    key='wormhole_relayer',
    label='WormholeRelayer',
    static_field='wormholeRelayers',
    dev_static_field='wormholeRelayersDev',
    process_name='deployWormholeRelayer',
    last_run_field='wormholeRelayerProxies'
)
MOCK_INTEGRATION = ContractFamily(
    key='mock_integration',
    label='mock integration',
    static_field='mockIntegrations',
    process_name='deployMockIntegration',
    last_run_field='mockIntegrations'
)
CREATE2_FACTORY = ContractFamily(
    key='create2_factory',
    label='create2Factory',
    static_field='create2Factories',
    process_name='deployCreate2Factory',
    last_run_field='create2Factories'
)

FAMILIES: tuple[ContractFamily, ...] = (DELIVERY_PROVIDER, WORMHOLE_RELAYER, MOCK_INTEGRATION, CREATE2_FACTORY)


class ArtifactResolver:
    def __init__(self, context: EnvironmentContext, run_log: RunLogWriter | None = None) -> None:
        self.context = context
        self.run_log = run_log or RunLogWriter(context)

    def read_contracts(self) -> ContractsFile:
        path = self.context.config_path('contracts.json')
        return parse_document(ContractsFile, self.context.read_json(path), path)

    def load_deployments(self, family: ContractFamily, dev: bool = False) -> list[Deployment]:
        contracts = self.read_contracts()

        if contracts.use_last_run:
            # Last-run output is a single build flavor; dev only applies to static lists.
            return self._load_from_last_run(family)

        field = family.dev_static_field if dev and family.dev_static_field else family.static_field
        declared = _static_field(contracts, field)
        if declared is None:
            raise ConfigError(f'contracts file for env {self.context.name} has no {field} list')
        return list(declared)

    def _load_from_last_run(self, family: ContractFamily) -> list[Deployment]:
        last_run = self.run_log.load_last_run(family.process_name)
        if last_run is None:
            raise ConfigError(f'Failed to find last run file for the {family.process_name} process!')
        if not isinstance(last_run, dict) or family.last_run_field not in last_run:
            raise ConfigError(
                f'last run of {family.process_name} has no {family.last_run_field} field'
            )

        LOGGER.debug('resolved %s from last run env=%s', family.key, self.context.name)
        return parse_deployments(
            last_run[family.last_run_field],
            f'{family.process_name}/lastrun.json:{family.last_run_field}'
        )

    def load_delivery_providers(self) -> list[Deployment]:
        return self.load_deployments(DELIVERY_PROVIDER)

    def load_wormhole_relayers(self, dev: bool) -> list[Deployment]:
        return self.load_deployments(WORMHOLE_RELAYER, dev=dev)

    def load_mock_integrations(self) -> list[Deployment]:
        return self.load_deployments(MOCK_INTEGRATION)

    def load_create2_factories(self) -> list[Deployment]:
        return self.load_deployments(CREATE2_FACTORY)

    def get_address(self, family: ContractFamily, chain: ChainDescriptor, dev: bool = False) -> str:
        for deployment in self.load_deployments(family, dev=dev):
            if deployment.chain_id == chain.chain_id and deployment.address:
                return deployment.address
        raise ConfigError(
            f'Failed to find a {family.label} contract address on chain {chain.chain_id}'
        )

    def get_delivery_provider_address(self, chain: ChainDescriptor) -> str:
        return self.get_address(DELIVERY_PROVIDER, chain)

    def get_wormhole_relayer_address(self, chain: ChainDescriptor) -> str:
        return self.get_address(WORMHOLE_RELAYER, chain, dev=get_settings().dev_build)

    def get_mock_integration_address(self, chain: ChainDescriptor) -> str:
        return self.get_address(MOCK_INTEGRATION, chain)

    def get_create2_factory_address(self, chain: ChainDescriptor) -> str:
        return self.get_address(CREATE2_FACTORY, chain)

    def connect(
        self,
        family: ContractFamily,
        chain: ChainDescriptor,
        connector: Callable[[str, Any], ContractT],
        signer_or_provider: Any
    ) -> ContractT:
        """Hand the resolved address to a contract binding factory."""
        dev = get_settings().dev_build if family is WORMHOLE_RELAYER else False
        return connector(self.get_address(family, chain, dev=dev), signer_or_provider)


def _static_field(contracts: ContractsFile, field: str) -> list[Deployment] | None:
    by_alias = {
        'deliveryProviders': contracts.delivery_providers,
        'wormholeRelayers': contracts.wormhole_relayers,
        'wormholeRelayersDev': contracts.wormhole_relayers_dev,
        'mockIntegrations': contracts.mock_integrations,
        'create2Factories': contracts.create2_factories
    }
    return by_alias[field]
