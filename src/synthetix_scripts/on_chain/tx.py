"""
Transaction lifecycle: build -> sign/broadcast -> wait for the receipt.

    BUILT -> SUBMITTED -> CONFIRMED | REVERTED | ERRORED

Transactions are built and sent through web3 and signed by the local account.
Nothing here retries. A failure to submit is reported as ERRORED and left to
the operator; a mined failure is REVERTED and carries whatever revert reason
could be recovered by replaying the transaction as an eth_call.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_account.signers.local import LocalAccount
from eth_utils import to_hex
import requests
from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.exceptions import TimeExhausted, Web3Exception

from synthetix_scripts.errors import ReceiptTimeout, Reverted, RpcError
from synthetix_scripts.on_chain.rpc import RpcClient, hex_to_int

log = logging.getLogger(__name__)

ERROR_SELECTOR = "08c379a0"  # Error(string)
PANIC_SELECTOR = "4e487b71"  # Panic(uint256)

# Anything that can go wrong with a single transaction, short of a bug
SEND_ERRORS = (RpcError, Web3Exception, requests.exceptions.RequestException, ValueError, TypeError)


class TxStatus(enum.Enum):
    BUILT = "built"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    ERRORED = "errored"


@dataclass
class TxResult:
    status: TxStatus
    tx_hash: Optional[str] = None
    receipt: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.status is TxStatus.CONFIRMED


# ---------- Revert reasons ----------
def _strip_hex(data: str) -> str:
    data = (data or "").lower()
    return data[2:] if data.startswith("0x") else data


def _parse_bytes32_string(word_hex: str) -> str:
    return bytes.fromhex(word_hex).rstrip(b"\x00").decode("utf-8")


def _chunked_utf8(tail_hex: str) -> str:
    out = ""
    for i in range(0, len(tail_hex), 62):
        chunk = tail_hex[i : i + 62] + "00"
        try:
            out += bytes.fromhex(chunk).decode("utf-8")
        except ValueError:
            continue
    return out.replace("\x00", "")


def decode_revert_reason(data: Optional[str]) -> Optional[str]:
    """Best-effort human readable reason from revert return data."""
    body = _strip_hex(data or "")
    if not body:
        return None

    if body.startswith(ERROR_SELECTOR):
        try:
            (reason,) = abi_decode(["string"], bytes.fromhex(body[8:]))
            return reason
        except (DecodingError, ValueError):
            pass  # malformed encoding, fall through to the raw decoders
    elif body.startswith(PANIC_SELECTOR) and len(body) >= 72:
        return f"Panic(0x{int(body[8:72], 16):x})"

    # selector (4 bytes) + offset word + length word, then the string bytes
    tail = body[136:]
    if len(tail) == 64:
        try:
            return _parse_bytes32_string(tail) or None
        except ValueError:
            pass
    return _chunked_utf8(tail) or None


def _revert_data_from_error(err: RpcError) -> Optional[str]:
    data = err.data
    if isinstance(data, dict):
        data = data.get("data") or data.get("result")
    if isinstance(data, str) and data.startswith("0x"):
        return data
    return None


def get_revert_reason(rpc: RpcClient, tx: Dict[str, Any], block: Any = "latest") -> Optional[str]:
    """Replay `tx` with eth_call at `block` and decode what it returns."""
    call = {
        "from": tx.get("from"),
        "to": tx.get("to"),
        "data": tx.get("data") or tx.get("input") or "0x",
        "value": hex(hex_to_int(tx.get("value"))),
    }
    if tx.get("gas"):
        call["gas"] = hex(hex_to_int(tx["gas"]))
    call = {k: v for k, v in call.items() if v is not None}
    try:
        result = rpc.eth_call(call, block)
    except RpcError as e:
        data = _revert_data_from_error(e)
        if data:
            return decode_revert_reason(data)
        msg = str(e)
        if "execution reverted:" in msg:
            return msg.split("execution reverted:", 1)[1].strip() or None
        raise
    return decode_revert_reason(result)


# ---------- Sending ----------
class TxSender:
    """Builds, signs and sends transactions from one local account."""

    def __init__(self, rpc: RpcClient, account: LocalAccount, chain_id: Optional[int] = None, poll_s: float = 2.0):
        self.rpc = rpc
        self.account = account
        self._chain_id = chain_id
        self.poll_s = poll_s

    @property
    def address(self) -> str:
        return self.account.address

    @property
    def web3(self) -> Web3:
        return self.rpc.web3

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self.web3.eth.chain_id
        return self._chain_id

    def build(
        self,
        function: ContractFunction,
        gas_price: int,
        gas_limit: int,
        nonce: Optional[int] = None,
        value: int = 0,
    ) -> Dict[str, Any]:
        if nonce is None:
            nonce = self.web3.eth.get_transaction_count(self.address, "pending")
        tx = function.build_transaction(
            {
                "from": self.address,
                "value": int(value),
                "gas": int(gas_limit),
                "gasPrice": int(gas_price),
                "nonce": int(nonce),
                "chainId": self.chain_id,
            }
        )
        return dict(tx)

    def submit(self, tx: Dict[str, Any]) -> str:
        signed = self.account.sign_transaction(tx)
        return to_hex(self.web3.eth.send_raw_transaction(signed.raw_transaction)).lower()

    def run_tx(self, tx: Dict[str, Any], timeout_s: float) -> TxResult:
        try:
            tx_hash = self.submit(tx)
        except SEND_ERRORS as e:
            return TxResult(TxStatus.ERRORED, error=e, reason=str(e))
        log.debug("submitted %s", tx_hash)

        try:
            receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout_s, poll_latency=self.poll_s)
        except TimeExhausted:
            err = ReceiptTimeout(tx_hash, timeout_s)
            return TxResult(TxStatus.ERRORED, tx_hash=tx_hash, error=err, reason=str(err))
        except SEND_ERRORS as e:
            return TxResult(TxStatus.ERRORED, tx_hash=tx_hash, error=e, reason=str(e))

        receipt = dict(receipt)
        if receipt.get("status") == 1:
            return TxResult(TxStatus.CONFIRMED, tx_hash=tx_hash, receipt=receipt)

        try:
            reason = get_revert_reason(self.rpc, tx, receipt.get("blockNumber", "latest"))
        except RpcError as e:
            log.debug("could not replay %s: %s", tx_hash, e)
            reason = None
        return TxResult(
            TxStatus.REVERTED,
            tx_hash=tx_hash,
            receipt=receipt,
            reason=reason,
            error=Reverted(tx_hash, reason),
        )
