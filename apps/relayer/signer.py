from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from importlib import import_module
from types import ModuleType
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3

from .chain_registry import ChainRegistry
from .config import get_settings
from .environment import ConfigError
from .schemas import ChainDescriptor

LOGGER = logging.getLogger('relayer.signer')

# WALLET_KEY value that routes signing to a Ledger device.
LEDGER_SENTINEL = 'ledger'


class TransactionSigner:
    """Signing capability bound to one chain's provider."""

    address: str
    web3: Web3

    def sign_transaction(self, tx: dict[str, Any]) -> bytes:
        raise NotImplementedError

    def sign_message(self, text: str) -> bytes:
        raise NotImplementedError

    def populate_transaction(self, tx: dict[str, Any]) -> dict[str, Any]:
        populated = dict(tx)
        populated.setdefault('from', self.address)
        if 'nonce' not in populated:
            populated['nonce'] = self.web3.eth.get_transaction_count(self.address)
        if 'chainId' not in populated:
            populated['chainId'] = self.web3.eth.chain_id
        if 'gasPrice' not in populated and 'maxFeePerGas' not in populated:
            populated['gasPrice'] = self.web3.eth.gas_price
        if 'gas' not in populated:
            populated['gas'] = self.web3.eth.estimate_gas(populated)
        return populated

    def send_transaction(self, tx: dict[str, Any]) -> str:
        raw = self.sign_transaction(self.populate_transaction(tx))
        tx_hash = self.web3.eth.send_raw_transaction(raw)
        return Web3.to_hex(tx_hash)


class LocalKeySigner(TransactionSigner):
    def __init__(self, account: LocalAccount, web3: Web3) -> None:
        self.account = account
        self.address = account.address
        self.web3 = web3

    def sign_transaction(self, tx: dict[str, Any]) -> bytes:
        unsigned = {key: value for key, value in tx.items() if key != 'from'}
        return bytes(self.account.sign_transaction(unsigned).raw_transaction)

    def sign_message(self, text: str) -> bytes:
        return bytes(self.account.sign_message(encode_defunct(text=text)).signature)


_ledgereth: dict[str, ModuleType] = {}


def _ledger_module(name: str) -> ModuleType:
    # ledgereth pulls in USB HID support; import it only when a device is used.
    if name not in _ledgereth:
        _ledgereth[name] = import_module(f'ledgereth.{name}')
    return _ledgereth[name]


class LedgerSigner(TransactionSigner):
    def __init__(self, web3: Web3, bip32_path: str, address: str, dongle: Any) -> None:
        self.web3 = web3
        self.bip32_path = bip32_path
        self.address = Web3.to_checksum_address(address)
        self.dongle = dongle

    @classmethod
    def create(cls, web3: Web3, bip32_path: str) -> 'LedgerSigner':
        dongle = _ledger_module('comms').init_dongle()
        account = _ledger_module('accounts').get_account_by_path(bip32_path, dongle=dongle)
        LOGGER.info('ledger signer ready address=%s path=%s', account.address, bip32_path)
        return cls(web3=web3, bip32_path=bip32_path, address=account.address, dongle=dongle)

    def sign_transaction(self, tx: dict[str, Any]) -> bytes:
        fees: dict[str, int] = {}
        if 'maxFeePerGas' in tx:
            fees['max_fee_per_gas'] = int(tx['maxFeePerGas'])
            fees['max_priority_fee_per_gas'] = int(tx.get('maxPriorityFeePerGas', 0))
        else:
            fees['gas_price'] = int(tx['gasPrice'])

        signed = _ledger_module('transactions').create_transaction(
            destination=tx.get('to'),
            amount=int(tx.get('value', 0)),
            gas=int(tx['gas']),
            nonce=int(tx['nonce']),
            data=HexBytes(tx.get('data', b'')),
            chain_id=int(tx['chainId']),
            sender_path=self.bip32_path,
            dongle=self.dongle,
            **fees
        )
        return bytes(HexBytes(signed.raw_transaction()))

    def sign_message(self, text: str) -> bytes:
        signed = _ledger_module('messages').sign_message(
            text,
            sender_path=self.bip32_path,
            dongle=self.dongle
        )
        return signed.r.to_bytes(32, 'big') + signed.s.to_bytes(32, 'big') + signed.v.to_bytes(1, 'big')


@dataclass(frozen=True)
class LocalKeyCredential:
    private_key: str = field(repr=False)

    async def open(self, web3: Web3) -> TransactionSigner:
        return LocalKeySigner(Account.from_key(self.private_key), web3)


@dataclass(frozen=True)
class DeviceCredential:
    bip32_path: str

    async def open(self, web3: Web3) -> TransactionSigner:
        return await asyncio.to_thread(LedgerSigner.create, web3, self.bip32_path)


Credential = LocalKeyCredential | DeviceCredential


def load_private_key() -> str:
    private_key = os.getenv('WALLET_KEY', '')
    if not private_key:
        raise ConfigError('Failed to find private key for this process!')
    return private_key


def load_credential() -> Credential:
    wallet_key = load_private_key()
    if wallet_key != LEDGER_SENTINEL:
        return LocalKeyCredential(private_key=wallet_key)

    bip32_path = os.getenv('LEDGER_BIP32_PATH')
    if bip32_path is None:
        raise ConfigError(
            'Missing BIP32 derivation path. '
            "With ledger devices the path needs to be specified in env var 'LEDGER_BIP32_PATH'."
        )
    return DeviceCredential(bip32_path=bip32_path)


def load_guardian_keys() -> list[str]:
    # Order matters: a guardian's index is encoded into its signature.
    raw_count = os.getenv('NUM_GUARDIANS', '').strip()
    try:
        num_guardians = int(raw_count) if raw_count else 1
    except ValueError as exc:
        raise ConfigError(f'NUM_GUARDIANS must be an integer, got {raw_count!r}') from exc
    LOGGER.debug('guardian count=%s', num_guardians)

    guardian_key = os.getenv('GUARDIAN_KEY', '')
    if not guardian_key:
        raise ConfigError('Failed to find guardian key for this process!')
    keys = [guardian_key]

    if num_guardians >= 2:
        guardian_key2 = os.getenv('GUARDIAN_KEY2', '')
        if not guardian_key2:
            raise ConfigError('Failed to find guardian key 2 for this process!')
        keys.append(guardian_key2)

    return keys


class SignerFactory:
    def __init__(self, registry: ChainRegistry) -> None:
        self.registry = registry

    def get_provider(self, chain: ChainDescriptor) -> Web3:
        # Always use the declared RPC URL for this chain id, not the caller's copy.
        rpc_url = self.registry.get_chain(chain.chain_id).rpc
        timeout = get_settings().rpc_timeout_seconds
        return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': timeout}))

    async def get_signer(self, chain: ChainDescriptor) -> TransactionSigner:
        credential = load_credential()
        web3 = self.get_provider(chain)
        signer = await credential.open(web3)
        LOGGER.info(
            'signer ready chain_id=%s backend=%s address=%s',
            chain.chain_id,
            type(signer).__name__,
            signer.address
        )
        return signer
