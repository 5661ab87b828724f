#!/usr/bin/env python3
"""Print the operating/supported chain split for the active ENV.

Usage, from the repository root (or anywhere after ``pip install -e .``):

    ENV=testnet python -m scripts.show_operation --addresses
"""
from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Any

from apps.relayer.artifacts import FAMILIES, ArtifactResolver
from apps.relayer.chain_registry import ChainRegistry
from apps.relayer.config import get_settings
from apps.relayer.environment import ConfigError, init
from apps.relayer.schemas import ChainDescriptor


def _chain_entry(chain: ChainDescriptor) -> dict[str, Any]:
    return {
        'chain_id': chain.chain_id,
        'evm_network_id': chain.evm_network_id,
        'wormhole_address': chain.wormhole_address
    }


def _addresses(resolver: ArtifactResolver, chain: ChainDescriptor) -> dict[str, str | None]:
    dev = get_settings().dev_build
    found: dict[str, str | None] = {}
    for family in FAMILIES:
        try:
            found[family.key] = resolver.get_address(family, chain, dev=dev)
        except ConfigError as exc:
            logging.getLogger('relayer.show_operation').warning('%s', exc)
            found[family.key] = None
    return found


def main() -> None:
    parser = argparse.ArgumentParser(description='Print the resolved operating/supported chain sets for ENV')
    parser.add_argument('--addresses', action='store_true', help='Also resolve contract addresses per operating chain')
    args = parser.parse_args()

    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    context = init()
    registry = ChainRegistry(context)
    descriptor = registry.get_operation_descriptor()

    payload: dict[str, Any] = {
        'env': context.name,
        'guardian_set_index': registry.read_chains().guardian_set_index,
        'operating_chains': [_chain_entry(chain) for chain in descriptor.operating_chains],
        'supported_chains': [_chain_entry(chain) for chain in descriptor.supported_chains]
    }

    if args.addresses:
        resolver = ArtifactResolver(context)
        payload['use_last_run'] = resolver.read_contracts().use_last_run
        payload['addresses'] = {
            str(chain.chain_id): _addresses(resolver, chain) for chain in descriptor.operating_chains
        }

    print(json.dumps(payload, indent=2))


if __name__ == '__main__':
    main()
