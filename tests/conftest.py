"""
Shared fixtures: an in-memory chain that speaks just enough JSON-RPC for the
scripts, plus helpers to build raw logs. web3 reaches the same chain through
`ChainProvider`, so contract calls and raw requests share one set of state.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest
from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_account import Account
from eth_utils import function_signature_to_4byte_selector, keccak, to_hex
from web3 import Web3
from web3.providers import BaseProvider

from synthetix_scripts.errors import RpcError
from synthetix_scripts.executor import RunContext
from synthetix_scripts.ledger.store import LedgerStore
from synthetix_scripts.on_chain.abi import Event, canonical_type
from synthetix_scripts.on_chain.rpc import RpcClient, hex_to_int
from synthetix_scripts.on_chain.events import KnownDeployment
from synthetix_scripts.on_chain.tx import TxSender
from synthetix_scripts.variables import KNOWN_BRIDGES

# Throwaway key, never funded anywhere
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"

TOKEN = "0x8700daec35af8ff88c16bdf0418774cb3d7599b4"
ALICE = "0x00000000000000000000000000000000000a11ce"
BOB = "0x0000000000000000000000000000000000000b0b"
CAROL = "0x00000000000000000000000000000000000ca201"


def selector(signature: str) -> str:
    return to_hex(function_signature_to_4byte_selector(signature))


BALANCE_OF = selector("balanceOf(address)")
TRANSFER = selector("transfer(address,uint256)")

ViewResult = Union[Sequence[Any], Callable[..., Sequence[Any]]]


def address_topic(address: str) -> str:
    return "0x" + "0" * 24 + address.lower()[2:]


def make_log(
    event: Event,
    address: str,
    tx_hash: str,
    block: int,
    indexed: Sequence[Any] = (),
    data: Sequence[Any] = (),
    log_index: int = 0,
) -> Dict[str, Any]:
    """Raw eth_getLogs entry for `event`. Indexed values must be addresses."""
    plain_types = [canonical_type(i) for i in event.inputs if not i.get("indexed")]
    return {
        "address": address,
        "topics": [event.topic] + [address_topic(a) for a in indexed],
        "data": "0x" + abi_encode(plain_types, list(data)).hex(),
        "transactionHash": tx_hash,
        "blockNumber": hex(block),
        "logIndex": hex(log_index),
    }


def _arg_types(signature: str) -> List[str]:
    inner = signature[signature.index("(") + 1 : -1]
    return inner.split(",") if inner else []


class ChainProvider(BaseProvider):
    """Hands web3 requests to a FakeChain and wraps the answers as JSON-RPC."""

    def __init__(self, chain: "FakeChain"):
        super().__init__()
        self.chain = chain

    def make_request(self, method, params):
        try:
            result = self.chain.call(method, list(params))
        except RpcError as e:
            error: Dict[str, Any] = {"code": e.code if e.code is not None else -32000, "message": str(e)}
            if e.data is not None:
                error["data"] = e.data
            return {"jsonrpc": "2.0", "id": 1, "error": error}
        return {"jsonrpc": "2.0", "id": 1, "result": result}

    def is_connected(self, show_traceback: bool = False) -> bool:
        return True


class FakeChain(RpcClient):
    """Handles calls in memory instead of over HTTP.

    `outcomes` scripts what happens to submitted transactions, in order:
    "ok", "revert" or "pending" (never mined). Defaults to "ok".
    `views` answers eth_call for other view functions, see `stub`.
    """

    def __init__(self, chain_id: int = 10, head: int = 1_000_000):
        super().__init__("http://fake.invalid", max_tries=1)
        self.chain = chain_id
        self.head = head
        self.balances: Dict[tuple, int] = {}
        self.logs: List[Dict[str, Any]] = []
        self.sent: List[str] = []
        self.raw: List[str] = []
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.outcomes: List[str] = []
        self.revert_data: Optional[str] = None
        self.failing: Dict[str, Exception] = {}
        self.methods: List[str] = []
        self.call_blocks: List[str] = []
        self.log_range_limit: Optional[int] = None
        self.views: Dict[Tuple[str, str], Tuple[List[str], List[str], ViewResult]] = {}

    def make_web3(self) -> Web3:
        return Web3(ChainProvider(self))

    def set_balance(self, token: str, holder: str, amount: int) -> None:
        self.balances[(token.lower(), holder.lower())] = amount

    def stub(self, address: str, signature: str, out_types: Sequence[str], result: ViewResult) -> None:
        """Answer `signature` on `address` with `result`, or with `result(*args)` when callable."""
        self.views[(address.lower(), selector(signature))] = (_arg_types(signature), list(out_types), result)

    def call(self, method: str, params: list) -> Any:
        self.methods.append(method)
        if method in self.failing:
            raise self.failing[method]
        return getattr(self, "_" + method)(*params)

    def _eth_blockNumber(self):
        return hex(self.head)

    def _eth_chainId(self):
        return hex(self.chain)

    def _eth_getTransactionCount(self, address, tag):
        return hex(len(self.sent))

    def _eth_getBlockByNumber(self, tag, full):
        number = self.head if tag == "latest" else hex_to_int(tag)
        return {"number": hex(number), "timestamp": hex(1_600_000_000 + number)}

    def _eth_getLogs(self, flt):
        lo, hi = hex_to_int(flt["fromBlock"]), hex_to_int(flt["toBlock"])
        if self.log_range_limit is not None and hi - lo + 1 > self.log_range_limit:
            raise RpcError("query returned more than 10000 results; block range limit exceeded", code=-32005)
        wanted = [t.lower() for t in (flt.get("topics") or [[]])[0]]
        out = []
        for lg in self.logs:
            if lg["address"].lower() != flt["address"].lower():
                continue
            if not lo <= hex_to_int(lg["blockNumber"]) <= hi:
                continue
            if wanted and lg["topics"][0].lower() not in wanted:
                continue
            out.append(lg)
        return out

    def _eth_call(self, tx, tag, *overrides):
        self.call_blocks.append(tag)
        data = tx.get("data") or tx.get("input") or "0x"
        to = tx["to"].lower()
        sel = data[:10]
        if sel == BALANCE_OF:
            (holder,) = abi_decode(["address"], bytes.fromhex(data[10:]))
            balance = self.balances.get((to, holder.lower()), 0)
            return "0x" + abi_encode(["uint256"], [balance]).hex()
        if sel == TRANSFER and self.revert_data is not None:
            raise RpcError("execution reverted", code=3, data=self.revert_data)
        if (to, sel) in self.views:
            in_types, out_types, result = self.views[(to, sel)]
            args = abi_decode(in_types, bytes.fromhex(data[10:])) if in_types else ()
            values = result(*args) if callable(result) else result
            return "0x" + abi_encode(out_types, list(values)).hex()
        return "0x"

    def _eth_sendRawTransaction(self, raw):
        tx_hash = to_hex(keccak(hexstr=raw)).lower()
        self.sent.append(tx_hash)
        self.raw.append(raw)
        outcome = self.outcomes.pop(0) if self.outcomes else "ok"
        if outcome != "pending":
            self.receipts[tx_hash] = {
                "transactionHash": tx_hash,
                "blockNumber": hex(self.head),
                "status": "0x1" if outcome == "ok" else "0x0",
            }
        return tx_hash

    def _eth_getTransactionReceipt(self, tx_hash):
        return self.receipts.get(tx_hash.lower())

    def _eth_getTransactionByHash(self, tx_hash):
        return self.transactions.get(tx_hash)


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def account():
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def sender(chain, account):
    return TxSender(chain, account, poll_s=0)


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "ledger.json"


@pytest.fixture
def make_ctx(chain, sender, ledger_path):
    def _make(defaults=None, **kwargs):
        kwargs.setdefault("receipt_timeout_s", 0.05)
        return RunContext(rpc=chain, store=LedgerStore(ledger_path, defaults), sender=sender, **kwargs)

    return _make


def fn_abi(name, inputs=(), outputs=("uint256",), mutability="view"):
    """Minimal function ABI entry; outputs may be (name, type) pairs."""

    def params(items):
        return [{"name": p[0], "type": p[1]} if isinstance(p, tuple) else {"name": "", "type": p} for p in items]

    return {
        "name": name,
        "inputs": params(inputs),
        "outputs": params(outputs),
        "stateMutability": mutability,
        "type": "function",
    }


def bridge_logs():
    """Deposits and escrow migrations spread over both known L1 bridges."""
    old, new = (KnownDeployment.from_dict(d) for d in KNOWN_BRIDGES)
    deposit = old.events["Deposit"]
    old_migrate = old.events["ExportedVestingEntries"]
    initiated = new.events["DepositInitiated"]
    new_migrate = new.events["ExportedVestingEntries"]
    return [
        # ALICE deposits and migrates escrow in the same tx on the old bridge
        make_log(deposit, old.address, "0x01", old.from_block + 1, [ALICE], [100]),
        make_log(old_migrate, old.address, "0x01", old.from_block + 1, [ALICE], [5, [(1, 5)]], log_index=1),
        # BOB only migrates on the old bridge
        make_log(old_migrate, old.address, "0x02", old.from_block + 2, [BOB], [7, []]),
        # CAROL is deposited to on the new bridge; ALICE deposits again
        make_log(initiated, new.address, "0x03", new.from_block + 1, [ALICE], [CAROL, 3]),
        make_log(initiated, new.address, "0x04", new.from_block + 2, [BOB], [ALICE, 3]),
        make_log(new_migrate, new.address, "0x05", new.from_block + 3, [BOB], [1, []]),
    ]
