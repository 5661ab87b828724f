from __future__ import annotations

from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator

from .environment import ConfigError

ModelT = TypeVar('ModelT', bound=BaseModel)


class _FileModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='allow', frozen=True)


class ChainDescriptor(_FileModel):
    evm_network_id: int = Field(alias='evmNetworkId')
    chain_id: int = Field(alias='chainId')
    rpc: str
    wormhole_address: str = Field(alias='wormholeAddress')


class Deployment(_FileModel):
    chain_id: int = Field(alias='chainId')
    address: str


class ChainFile(_FileModel):
    chains: list[ChainDescriptor] | None = None
    guardian_set_index: int | None = Field(default=None, alias='guardianSetIndex')
    operating_chains: list[int] | None = Field(default=None, alias='operatingChains')

    @field_validator('chains')
    @classmethod
    def unique_chain_ids(cls, chains: list[ChainDescriptor] | None) -> list[ChainDescriptor] | None:
        seen: set[int] = set()
        for chain in chains or []:
            if chain.chain_id in seen:
                raise ValueError(f'duplicate chainId {chain.chain_id}')
            seen.add(chain.chain_id)
        return chains


class ContractsFile(_FileModel):
    use_last_run: StrictBool = Field(alias='useLastRun')
    delivery_providers: list[Deployment] | None = Field(default=None, alias='deliveryProviders')
    wormhole_relayers: list[Deployment] | None = Field(default=None, alias='wormholeRelayers')
    wormhole_relayers_dev: list[Deployment] | None = Field(default=None, alias='wormholeRelayersDev')
    mock_integrations: list[Deployment] | None = Field(default=None, alias='mockIntegrations')
    create2_factories: list[Deployment] | None = Field(default=None, alias='create2Factories')


def parse_document(model: type[ModelT], payload: Any, source: Path | str) -> ModelT:
    """Validate a loaded JSON document, reporting schema violations as ConfigError."""
    if not isinstance(payload, dict):
        raise ConfigError(f'{source}: expected a JSON object, got {type(payload).__name__}')
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f'{source}: {exc}') from exc


def parse_deployments(payload: Any, source: str) -> list[Deployment]:
    if not isinstance(payload, list):
        raise ConfigError(f'{source}: expected a list of deployments')
    try:
        return [Deployment.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise ConfigError(f'{source}: {exc}') from exc
