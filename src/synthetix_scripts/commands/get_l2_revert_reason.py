"""Retrieves the revert reason of a failed L2 transaction by replaying it."""

import json
import logging
import sys
from typing import Optional, Sequence

from synthetix_scripts import cli
from synthetix_scripts.config import Settings, ensure_network, resolve_provider_url
from synthetix_scripts.errors import InvalidInput, RpcError
from synthetix_scripts.on_chain.rpc import RpcClient, hex_to_int
from synthetix_scripts.on_chain.tx import get_revert_reason

log = logging.getLogger(__name__)


def lookup_reason(rpc: RpcClient, tx_hash: str) -> Optional[str]:
    tx = rpc.get_transaction(tx_hash)
    if tx is None:
        raise InvalidInput(f"transaction {tx_hash} not found")
    log.info("Transaction: %s", json.dumps(tx, indent=2))

    receipt = rpc.get_transaction_receipt(tx_hash)
    log.info("Receipt: %s", json.dumps(receipt, indent=2))

    block = hex_to_int(receipt["blockNumber"]) if receipt and receipt.get("blockNumber") else "latest"
    try:
        return get_revert_reason(rpc, tx, block)
    except RpcError as e:
        log.warning("Replay failed: %s", e)
        return None


def _main(args, settings: Settings) -> None:
    network = ensure_network(args.network)
    tx_hash = cli.require(args.tx_hash, "Please specify a transaction hash")
    rpc = RpcClient(resolve_provider_url(network, args.provider_url, settings))
    reason = lookup_reason(rpc, tx_hash)
    if reason:
        log.info("Reason: %s", reason)
    else:
        log.error("Unable to retrieve revert reason")


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Retrieves a revert reason for a failing L2 transaction")
    cli.add_provider_args(p, network_default="mainnet")
    p.add_argument("--tx-hash", help="The hash of the transaction that reverted")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
