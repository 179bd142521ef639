import logging
import random
import threading
import time
from typing import Any, Dict, List, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from web3 import Web3

from synthetix_scripts.errors import RpcError

log = logging.getLogger(__name__)

BlockTag = Union[int, str]

RETRYABLE_HTTP = {429, 500, 502, 503, 504}
RETRYABLE_MESSAGES = (
    "rate limit",
    "too many",
    "capacity",
    "timeout",
    "timed out",
    "temporarily unavailable",
    "header not found",
)


# ---------- Utils ----------
def hex_to_int(h: Optional[Union[str, int]]) -> int:
    if h is None:
        return 0
    if isinstance(h, int):
        return h
    if h == "0x" or not h:
        return 0
    return int(h, 16)


def to_block_hex(n: BlockTag) -> str:
    if isinstance(n, str) and not n.isdigit():
        return n  # "latest", "earliest", "pending" or already hex
    return hex(int(n))


def topic_to_address(topic_hex: str) -> str:
    """topics[i] are 32-byte values; addresses are right-aligned (last 20 bytes)."""
    clean = (topic_hex or "").lower().replace("0x", "")
    return "0x" + clean[-40:]


# ---------- JSON-RPC ----------
class RpcClient:
    """Blocking JSON-RPC client with keep-alive and backoff on throttling."""

    def __init__(self, url: str, *, timeout_s: float = 120, max_tries: int = 6, pool_size: int = 32):
        self.url = url
        self.timeout_s = timeout_s
        self.max_tries = max_tries
        self._id = 0
        self._id_lock = threading.Lock()
        self._session = requests.Session()
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)
        self._web3: Optional[Web3] = None

    @property
    def web3(self) -> Web3:
        """web3 on the same endpoint, for contract calls and transactions."""
        if self._web3 is None:
            self._web3 = self.make_web3()
        return self._web3

    def make_web3(self) -> Web3:
        provider = Web3.HTTPProvider(self.url, request_kwargs={"timeout": self.timeout_s}, session=self._session)
        return Web3(provider)

    def _next_id(self) -> int:
        with self._id_lock:
            self._id += 1
            return self._id

    def call(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "id": self._next_id(), "method": method, "params": params}
        backoff = 0.5
        for attempt in range(1, self.max_tries + 1):
            last = attempt == self.max_tries
            try:
                r = self._session.post(self.url, json=payload, timeout=self.timeout_s)
            except requests.exceptions.RequestException as e:
                if last:
                    raise RpcError(f"{method} transport error: {e}") from e
                log.debug("%s transport error (%s), retrying in %.1fs", method, e, backoff)
                time.sleep(backoff)
                backoff = min(backoff * 2, 8.0)
                continue

            if r.status_code in RETRYABLE_HTTP:
                ra = r.headers.get("Retry-After")
                retry_after = int(ra) if ra and ra.isdigit() else None
                if last:
                    raise RpcError(f"{method} HTTP {r.status_code}", status_code=r.status_code, retry_after_s=retry_after)
                time.sleep(float(retry_after) if retry_after else backoff + random.uniform(0, 0.25))
                backoff = min(backoff * 2, 8.0)
                continue
            if r.status_code >= 400:
                raise RpcError(f"{method} HTTP {r.status_code}: {r.text[:200]}", status_code=r.status_code)

            try:
                resp = r.json()
            except ValueError as e:
                raise RpcError(f"invalid JSON-RPC response: {r.text[:200]!r}") from e

            err = resp.get("error") if isinstance(resp, dict) else None
            if err:
                err = err if isinstance(err, dict) else {"message": str(err)}
                msg = str(err.get("message", "")).lower()
                if "revert" not in msg and any(x in msg for x in RETRYABLE_MESSAGES) and not last:
                    time.sleep(backoff)
                    backoff = min(backoff * 2, 8.0)
                    continue
                raise RpcError(
                    f"RPC error in {method}: {err.get('message')}",
                    code=err.get("code"),
                    data=err.get("data"),
                )
            return resp.get("result")
        raise RpcError(f"RPC request failed after retries: {method}")

    # ---------- Chain collaborator interface ----------
    def get_logs(self, flt: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self.call("eth_getLogs", [flt]) or []

    def eth_call(self, tx: Dict[str, Any], block_tag: BlockTag = "latest") -> str:
        return self.call("eth_call", [tx, to_block_hex(block_tag)])

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionReceipt", [tx_hash])

    def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionByHash", [tx_hash])

    def get_block(self, number_or_tag: BlockTag = "latest") -> Dict[str, int]:
        blk = self.call("eth_getBlockByNumber", [to_block_hex(number_or_tag), False])
        if not blk:
            raise RpcError(f"block {number_or_tag} not found")
        return {"number": hex_to_int(blk.get("number")), "timestamp": hex_to_int(blk.get("timestamp"))}

    def block_number(self) -> int:
        return hex_to_int(self.call("eth_blockNumber", []))
