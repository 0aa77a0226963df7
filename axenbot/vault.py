"""Client for the Axen vault contract on an EVM compatible RPC endpoint."""

import asyncio
import json
from decimal import Decimal, Inexact, InvalidOperation, localcontext
from typing import Any, Callable, Optional

from web3 import Web3
from web3.exceptions import Web3Exception

from . import config
from .errors import TransportFailure, ValidationFailure

VAULT_ABI: list[dict] = [
    {
        "inputs": [],
        "name": "deposit",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "amount", "type": "uint256"}],
        "name": "withdraw",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getBalance",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# uint256 holds at most 78 decimal digits
MAX_AMOUNT_DIGITS = 78
MAX_UINT256 = 2**256 - 1


def load_abi(path: Optional[str]) -> list[dict]:
    """Return the ABI stored at ``path`` or the built-in vault ABI."""
    if not path:
        return VAULT_ABI
    try:
        with open(path, encoding="utf-8") as fh:
            abi = json.load(fh)
    except (OSError, ValueError) as exc:
        config.logger.error("cannot load vault ABI from %s: %s", path, exc)
        raise ValidationFailure(f"vault ABI could not be loaded from {path}") from exc
    if not isinstance(abi, list):
        raise ValidationFailure(f"vault ABI in {path} is not a JSON list")
    return abi


def parse_amount(amount: str) -> Decimal:
    """Return ``amount`` as a positive ``Decimal`` or raise ``ValidationFailure``.

    Amounts whose plain notation would exceed ``MAX_AMOUNT_DIGITS`` digits on
    either side of the decimal point are rejected.
    """
    text = (amount or "").strip()
    if not text:
        raise ValidationFailure("amount is required")
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValidationFailure(f"invalid amount: {text}") from None
    if not value.is_finite() or value <= 0:
        raise ValidationFailure("amount must be a positive number")
    exponent = value.as_tuple().exponent
    if value.adjusted() >= MAX_AMOUNT_DIGITS or -exponent > MAX_AMOUNT_DIGITS:
        raise ValidationFailure("amount is out of range")
    return value


def to_base_units(amount: str, decimals: int = 18) -> int:
    """Convert a decimal string like ``"1.5"`` to integer base units."""
    value = parse_amount(amount)
    with localcontext() as ctx:
        ctx.prec = 2 * MAX_AMOUNT_DIGITS + abs(decimals)
        ctx.traps[Inexact] = True
        scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValidationFailure(f"amount has more than {decimals} decimal places")
    units = int(scaled)
    if units > MAX_UINT256:
        raise ValidationFailure("amount is out of range")
    return units


def from_base_units(value: int, decimals: int = 18) -> Decimal:
    """Convert integer base units back to a ``Decimal`` amount."""
    return Decimal(int(value)).scaleb(-decimals).normalize()


class VaultClient:
    """Deposit into, withdraw from and query the vault contract.

    Calls go through web3's blocking HTTP provider and are moved to the
    default executor so the event loop keeps serving other chats.
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        address: Optional[str] = None,
        *,
        decimals: Optional[int] = None,
        abi: Optional[list[dict]] = None,
        contract: Any = None,
    ) -> None:
        self.rpc_url = rpc_url or config.RPC_URL
        self.address = address if address is not None else config.VAULT_ADDRESS
        self.decimals = config.VAULT_DECIMALS if decimals is None else decimals
        self._contract = contract
        self._abi = abi
        self._web3: Optional[Web3] = None

    @property
    def configured(self) -> bool:
        return bool(self._contract is not None or (self.address and self.rpc_url))

    @property
    def contract(self):
        if self._contract is None:
            if not self.configured:
                raise ValidationFailure("vault contract address is not configured")
            if not Web3.is_address(self.address):
                raise ValidationFailure(f"invalid contract address: {self.address}")
            abi = self._abi or load_abi(config.VAULT_ABI_PATH)
            try:
                web3 = Web3(Web3.HTTPProvider(self.rpc_url))
                contract = web3.eth.contract(
                    address=Web3.to_checksum_address(self.address), abi=abi
                )
            except (Web3Exception, ValueError, TypeError) as exc:
                config.logger.error("cannot build vault contract: %s", exc)
                raise ValidationFailure("vault contract could not be set up") from exc
            self._web3 = web3
            self._contract = contract
        return self._contract

    async def _call(self, description: str, func: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, func)
        except (Web3Exception, ValueError, OSError) as exc:
            config.logger.error("%s failed: %s", description, exc)
            raise TransportFailure(f"{description} failed") from exc

    @staticmethod
    def _sender(from_address: str) -> str:
        if not from_address or not Web3.is_address(from_address):
            raise ValidationFailure(f"invalid wallet address: {from_address}")
        return Web3.to_checksum_address(from_address)

    async def get_balance(self) -> Decimal:
        """Return the vault's balance in whole tokens."""
        contract = self.contract
        raw = await self._call(
            "getBalance", lambda: contract.functions.getBalance().call()
        )
        balance = from_base_units(raw, self.decimals)
        config.logger.info("vault balance fetched: %s", balance)
        return balance

    async def deposit(self, amount: str, from_address: str) -> str:
        """Send ``amount`` to the vault from ``from_address``; return the tx hash."""
        value = to_base_units(amount, self.decimals)
        sender = self._sender(from_address)
        contract = self.contract
        config.logger.info("depositing %s from %s", amount, sender)
        tx_hash = await self._call(
            "deposit",
            lambda: contract.functions.deposit().transact(
                {"from": sender, "value": value}
            ),
        )
        return _hex(tx_hash)

    async def withdraw(self, amount: str, from_address: str) -> str:
        """Withdraw ``amount`` from the vault to ``from_address``."""
        value = to_base_units(amount, self.decimals)
        sender = self._sender(from_address)
        contract = self.contract
        config.logger.info("withdrawing %s to %s", amount, sender)
        tx_hash = await self._call(
            "withdraw",
            lambda: contract.functions.withdraw(value).transact({"from": sender}),
        )
        return _hex(tx_hash)


def _hex(tx_hash: Any) -> str:
    if isinstance(tx_hash, (bytes, bytearray)):
        return "0x" + bytes(tx_hash).hex()
    return str(tx_hash)
