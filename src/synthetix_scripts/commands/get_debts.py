"""
Snapshots SynthetixDebtShare balances: every address that ever sent or
received debt shares, with its balance at one fixed block.

The ledger header (contract address, deployed block, snapshot block) is kept in
`totals`; resuming against a ledger with a different header is refused.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from synthetix_scripts import cli
from synthetix_scripts.config import Settings, resolve_provider_url
from synthetix_scripts.errors import CorruptLedger
from synthetix_scripts.executor import ActionExecutor, RunContext
from synthetix_scripts.ledger import amounts
from synthetix_scripts.ledger.store import LedgerStore
from synthetix_scripts.on_chain.abi import Contract
from synthetix_scripts.on_chain.events import scan_events
from synthetix_scripts.on_chain.rpc import RpcClient
from synthetix_scripts.variables import (
    DEBT_SHARE_ADDRESS,
    DEBT_SHARE_DEPLOYED_BLOCK,
    ERC20_ABI,
    READ_POOL_WIDTH,
    TRANSFER_EVENT,
    ZERO_ADDRESS,
)

log = logging.getLogger(__name__)

HEAD_OFFSET = 10
HEADER_FIELDS = ("contractAddress", "deployedBlock", "latestBlock")


def default_data_file(deployed_block: int) -> Path:
    return Path("data") / f"{deployed_block}-users-debts.json"


def check_header(store: LedgerStore, header: Dict[str, str]) -> None:
    recorded = {k: store.totals.get(k) for k in HEADER_FIELDS}
    if all(v is None for v in recorded.values()):
        for k, v in header.items():
            store.set_total(k, v)
        return
    if recorded != header:
        raise CorruptLedger(str(store.path), f"debts header {recorded} does not match {header}")


def get_accounts(ctx: RunContext, debt_share: Contract, deployed_block: int, latest_block: int) -> List[str]:
    seen = set()
    addresses: List[str] = []
    for ev in scan_events(ctx.rpc, debt_share.address, [TRANSFER_EVENT], deployed_block, latest_block):
        for address in (ev.args["from"], ev.args["to"]):
            if address != ZERO_ADDRESS and address not in seen:
                seen.add(address)
                addresses.append(address)
    return addresses


def get_debts(
    ctx: RunContext,
    debt_share: Contract,
    deployed_block: int,
    latest_block: int,
    workers: int = READ_POOL_WIDTH,
) -> List[str]:
    check_header(
        ctx.store,
        {
            "contractAddress": debt_share.address,
            "deployedBlock": str(deployed_block),
            "latestBlock": str(latest_block),
        },
    )
    addresses = get_accounts(ctx, debt_share, deployed_block, latest_block)
    log.info("  Collected %d addresses", len(addresses))

    def read_debt(address: str):
        debt = debt_share.call("balanceOf", address, block_tag=latest_block)
        log.debug("    > %s debt: %s", address, amounts.format_units(debt))
        if debt <= 0:
            return None
        return {"debt": str(debt)}, {"totalDebt": debt, "numDebtors": 1}

    ActionExecutor(ctx).read_all(addresses, read_debt, workers=workers, prefix="debts")
    return addresses


def _main(args, settings: Settings) -> None:
    provider_url = resolve_provider_url("mainnet", args.provider_url, settings, use_default=False)
    rpc = RpcClient(provider_url)
    address = cli.require_address(args.address, "contract address")
    deployed_block = args.deployed_block
    data_file = args.data_file or default_data_file(deployed_block)

    store = LedgerStore(data_file, {"totalDebt": "0", "numDebtors": "0"})
    latest_block = args.latest_block
    if latest_block is None:
        recorded = store.totals.get("latestBlock")
        latest_block = amounts.to_int(recorded) if recorded else rpc.block_number() - HEAD_OFFSET

    log.info("      Provider URL: %s", provider_url)
    log.info("  Deployed Address: %s", address)
    log.info("    Deployed Block: %s", deployed_block)
    log.info("      Latest block: %s", latest_block)
    log.info("              File: %s", data_file)

    ctx = RunContext(rpc=rpc, store=store)
    get_debts(ctx, Contract(rpc, address, ERC20_ABI), deployed_block, latest_block, args.workers)
    log.info(
        "Debtors: %s, total debt shares: %s",
        store.totals["numDebtors"], amounts.format_units(store.totals["totalDebt"]),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Get all the addresses with their debts querying the SynthetixDebtShare contract")
    p.add_argument("--provider-url", help="L1 provider url (defaults to PROVIDER_URL)")
    p.add_argument("--address", default=DEBT_SHARE_ADDRESS, help="Contract address")
    p.add_argument("--deployed-block", default=DEBT_SHARE_DEPLOYED_BLOCK, type=int, help="Block in which the contract was deployed")
    p.add_argument("--latest-block", default=None, type=int, help="Block until which to fetch data")
    p.add_argument("--data-file", help="Defaults to data/<deployed-block>-users-debts.json")
    p.add_argument("--workers", default=READ_POOL_WIDTH, type=int, help="Concurrent balance reads")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
