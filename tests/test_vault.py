from decimal import Decimal

import pytest
from web3 import Web3
from web3.exceptions import Web3Exception

from axenbot.errors import TransportFailure, ValidationFailure
import axenbot.config as config
from axenbot.vault import (
    VAULT_ABI,
    VaultClient,
    from_base_units,
    load_abi,
    parse_amount,
    to_base_units,
)

SENDER = "0xd9145cce52d386f254917e481eb44e9943f39138"


class DummyCall:
    def __init__(self, contract, name, args):
        self.contract = contract
        self.name = name
        self.args = args

    def call(self):
        if self.contract.error:
            raise self.contract.error
        return self.contract.balance

    def transact(self, tx):
        self.contract.transactions.append((self.name, self.args, tx))
        return bytes.fromhex("ab" * 32)


class DummyFunctions:
    def __init__(self, contract):
        self.contract = contract

    def __getattr__(self, name):
        return lambda *args: DummyCall(self.contract, name, args)


class DummyContract:
    def __init__(self, balance=0, error=None):
        self.balance = balance
        self.error = error
        self.transactions = []
        self.functions = DummyFunctions(self)


def test_to_base_units():
    assert to_base_units("1") == 10**18
    assert to_base_units("0.5", 12) == 500_000_000_000
    assert to_base_units(" 2.25 ", 2) == 225


@pytest.mark.parametrize("amount", ["", "abc", "0", "-1", "nan", "inf", "0.001"])
def test_to_base_units_rejects(amount):
    with pytest.raises(ValidationFailure):
        to_base_units(amount, 2)


def test_parse_amount():
    assert parse_amount("10") == Decimal("10")
    with pytest.raises(ValidationFailure):
        parse_amount(None)


def test_from_base_units():
    assert from_base_units(1_500_000_000_000_000_000) == Decimal("1.5")
    assert from_base_units(0) == Decimal(0)


@pytest.mark.asyncio
async def test_get_balance():
    vault = VaultClient(contract=DummyContract(balance=25 * 10**17))
    assert vault.configured
    assert await vault.get_balance() == Decimal("2.5")


@pytest.mark.asyncio
async def test_get_balance_transport_failure():
    vault = VaultClient(contract=DummyContract(error=Web3Exception("rpc down")))
    with pytest.raises(TransportFailure):
        await vault.get_balance()


@pytest.mark.asyncio
async def test_deposit_sends_value_in_base_units():
    contract = DummyContract()
    vault = VaultClient(contract=contract, decimals=12)
    tx_hash = await vault.deposit("1.5", SENDER)
    assert tx_hash == "0x" + "ab" * 32
    name, args, tx = contract.transactions[0]
    assert name == "deposit"
    assert args == ()
    assert tx == {
        "from": Web3.to_checksum_address(SENDER),
        "value": 1_500_000_000_000,
    }


@pytest.mark.asyncio
async def test_withdraw_passes_amount_argument():
    contract = DummyContract()
    vault = VaultClient(contract=contract, decimals=18)
    await vault.withdraw("0.05", SENDER)
    name, args, tx = contract.transactions[0]
    assert name == "withdraw"
    assert args == (5 * 10**16,)
    assert tx == {"from": Web3.to_checksum_address(SENDER)}


@pytest.mark.asyncio
async def test_invalid_sender_rejected_before_transaction():
    contract = DummyContract()
    vault = VaultClient(contract=contract)
    with pytest.raises(ValidationFailure):
        await vault.deposit("1", "not-an-address")
    assert contract.transactions == []


def test_unconfigured_vault():
    vault = VaultClient("https://rpc.example", "")
    assert not vault.configured
    with pytest.raises(ValidationFailure):
        vault.contract


def test_to_base_units_keeps_every_digit():
    assert to_base_units("12345678901.123456789012345678") == (
        12345678901123456789012345678
    )
    assert to_base_units("0.000000000000000001") == 1


@pytest.mark.parametrize("amount", ["1e100000", "1e-100000", "1e78"])
def test_parse_amount_rejects_out_of_range(amount):
    with pytest.raises(ValidationFailure):
        parse_amount(amount)


def test_to_base_units_rejects_above_uint256():
    with pytest.raises(ValidationFailure):
        to_base_units("9" * 77, 18)


def test_load_abi(tmp_path):
    assert load_abi(None) == VAULT_ABI
    path = tmp_path / "abi.json"
    path.write_text('[{"type": "function", "name": "getBalance"}]')
    assert load_abi(str(path))[0]["name"] == "getBalance"


@pytest.mark.parametrize("content", [None, "{not json", '{"abi": []}'])
def test_load_abi_rejects_bad_file(tmp_path, content):
    path = tmp_path / "abi.json"
    if content is not None:
        path.write_text(content)
    with pytest.raises(ValidationFailure):
        load_abi(str(path))


@pytest.mark.asyncio
async def test_get_balance_with_missing_abi(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "VAULT_ABI_PATH", str(tmp_path / "missing.json"))
    vault = VaultClient("http://127.0.0.1:8545", SENDER)
    with pytest.raises(ValidationFailure):
        await vault.get_balance()
