import json
import os
import tempfile
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import patch

from apps.relayer import environment
from apps.relayer.chain_registry import ChainRegistry
from apps.relayer.config import get_settings
from apps.relayer.environment import ConfigError


def _chain(chain_id: int) -> dict[str, Any]:
    return {
        'evmNetworkId': 1000 + chain_id,
        'chainId': chain_id,
        'rpc': f'http://rpc-{chain_id}.local:8545',
        'wormholeAddress': f'0x{chain_id:040x}'
    }


class ChainRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self._env = patch.dict(
            'os.environ',
            {
                'ENV': 'testnet',
                'RELAYER_CONFIG_ROOT': str(self.root / 'config'),
                'RELAYER_OUTPUT_ROOT': str(self.root / 'output'),
                'RELAYER_ENV_FILE_DIR': str(self.root)
            },
            clear=False
        )
        self._env.start()
        os.environ.pop('CONTAINER', None)
        get_settings.cache_clear()
        environment.reset()
        self.registry = ChainRegistry(environment.init())
        self.registry.context.config_path().mkdir(parents=True)

    def tearDown(self) -> None:
        self._env.stop()
        self._tmp.cleanup()
        get_settings.cache_clear()
        environment.reset()

    def _write_chains(self, payload: dict[str, Any]) -> None:
        self.registry.context.config_path('chains.json').write_text(json.dumps(payload), encoding='utf-8')

    def _set_container(self, value: str) -> None:
        os.environ['CONTAINER'] = value
        get_settings.cache_clear()

    def test_load_chains_parses_descriptors(self) -> None:
        self._write_chains({'chains': [_chain(2), _chain(4)], 'guardianSetIndex': 3})

        chains = self.registry.load_chains()

        self.assertEqual([chain.chain_id for chain in chains], [2, 4])
        self.assertEqual(chains[0].evm_network_id, 1002)
        self.assertEqual(chains[1].rpc, 'http://rpc-4.local:8545')
        self.assertEqual(self.registry.load_guardian_set_index(), 3)

    def test_missing_chains_field(self) -> None:
        self._write_chains({'guardianSetIndex': 0})
        with self.assertRaises(ConfigError) as ctx:
            self.registry.load_chains()
        self.assertIn("Couldn't find chain information", str(ctx.exception))

    def test_missing_guardian_set_index(self) -> None:
        self._write_chains({'chains': [_chain(2)]})
        with self.assertRaises(ConfigError):
            self.registry.load_guardian_set_index()

    def test_malformed_descriptor_is_config_error(self) -> None:
        self._write_chains({'chains': [{'chainId': 2}]})
        with self.assertRaises(ConfigError):
            self.registry.load_chains()

    def test_duplicate_chain_ids_are_rejected(self) -> None:
        self._write_chains({'chains': [_chain(2), _chain(2), _chain(4)], 'operatingChains': [2]})

        with self.assertRaises(ConfigError) as ctx:
            self.registry.load_chains()
        self.assertIn('duplicate chainId 2', str(ctx.exception))
        with self.assertRaises(ConfigError):
            self.registry.get_operation_descriptor()

    def test_missing_chain_file(self) -> None:
        with self.assertRaises(ConfigError):
            self.registry.load_chains()

    def test_get_chain(self) -> None:
        self._write_chains({'chains': [_chain(2), _chain(4)]})
        self.assertEqual(self.registry.get_chain(4).chain_id, 4)
        with self.assertRaises(ConfigError) as ctx:
            self.registry.get_chain(99)
        self.assertIn('Bad chain ID', str(ctx.exception))

    def test_no_partition_means_all_chains_operate(self) -> None:
        self._write_chains({'chains': [_chain(2), _chain(4), _chain(6)]})

        self.assertIsNone(self.registry.resolve_operating_chain_ids())
        self.assertEqual(self.registry.get_operating_chains(), self.registry.load_chains())
        descriptor = self.registry.get_operation_descriptor()
        self.assertEqual(list(descriptor.operating_chains), self.registry.load_chains())
        self.assertEqual(descriptor.supported_chains, ())

    def test_declared_operating_chains_keep_declaration_order(self) -> None:
        self._write_chains({'chains': [_chain(6), _chain(2), _chain(4)], 'operatingChains': [4, 2]})

        operating = self.registry.get_operating_chains()
        descriptor = self.registry.get_operation_descriptor()

        self.assertEqual([chain.chain_id for chain in operating], [2, 4])
        self.assertEqual([chain.chain_id for chain in descriptor.operating_chains], [2, 4])
        self.assertEqual([chain.chain_id for chain in descriptor.supported_chains], [6])

    def test_partition_is_complete_and_disjoint(self) -> None:
        all_ids = [2, 4, 5, 6, 10, 14]
        self._write_chains({'chains': [_chain(i) for i in all_ids], 'operatingChains': [14, 5, 99]})

        descriptor = self.registry.get_operation_descriptor()
        operating = {chain.chain_id for chain in descriptor.operating_chains}
        supported = {chain.chain_id for chain in descriptor.supported_chains}

        self.assertEqual(operating | supported, set(all_ids))
        self.assertEqual(operating & supported, set())
        self.assertEqual(len(descriptor.operating_chains) + len(descriptor.supported_chains), len(all_ids))

    def test_container_hint_pins_single_chain(self) -> None:
        self._write_chains({'chains': [_chain(2), _chain(4), _chain(6)]})

        self._set_container('evm2')
        self.assertEqual(self.registry.resolve_operating_chain_ids(), [4])
        self.assertEqual([chain.chain_id for chain in self.registry.get_operating_chains()], [4])

        self._set_container('evm1')
        descriptor = self.registry.get_operation_descriptor()
        self.assertEqual([chain.chain_id for chain in descriptor.operating_chains], [2])
        self.assertEqual([chain.chain_id for chain in descriptor.supported_chains], [4, 6])

    def test_unknown_container_is_ignored(self) -> None:
        self._write_chains({'chains': [_chain(2)]})
        self._set_container('worker-7')
        self.assertIsNone(self.registry.resolve_operating_chain_ids())

    def test_chain_file_overrides_container_hint(self) -> None:
        self._write_chains({'chains': [_chain(2), _chain(4), _chain(6)], 'operatingChains': [6]})
        self._set_container('evm1')

        self.assertEqual(self.registry.resolve_operating_chain_ids(), [6])
        self.assertEqual([chain.chain_id for chain in self.registry.get_operating_chains()], [6])

    def test_reads_are_not_cached(self) -> None:
        self._write_chains({'chains': [_chain(2)]})
        self.assertEqual(len(self.registry.load_chains()), 1)
        self._write_chains({'chains': [_chain(2), _chain(4)]})
        self.assertEqual(len(self.registry.load_chains()), 2)
