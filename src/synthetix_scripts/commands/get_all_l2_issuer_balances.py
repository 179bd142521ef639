"""
Finds every account that ever issued sUSD on L2 and records the ones whose
current sUSD balance is above a minimum.

Balances are read at the block recorded in the ledger on the first run, so a
resumed run keeps adding to the same snapshot.
"""

import logging
import sys
from typing import List, Optional, Sequence

from synthetix_scripts import cli
from synthetix_scripts.config import Settings, ensure_network, resolve_provider_url
from synthetix_scripts.deployments import deployment_path_for, resolve_target
from synthetix_scripts.executor import ActionExecutor, RunContext, snapshot_block
from synthetix_scripts.ledger import amounts
from synthetix_scripts.ledger.store import LedgerStore
from synthetix_scripts.on_chain.abi import Contract
from synthetix_scripts.on_chain.events import scan_events, unique_addresses
from synthetix_scripts.on_chain.rpc import RpcClient
from synthetix_scripts.variables import ERC20_ABI, ISSUED_EVENT, OVM_MAINNET_TOKENS

log = logging.getLogger(__name__)

DEFAULT_TOTALS = {"total": "0", "totalIssuers": "0"}


def get_issuer_balances(ctx: RunContext, susd: Contract, minimum: int, workers: int = 1) -> List[str]:
    block = snapshot_block(ctx)

    log.info("1) Retrieving all sUSD issue events...")
    events = list(scan_events(ctx.rpc, susd.address, [ISSUED_EVENT], "earliest", block))
    log.info("  > found %d events", len(events))
    ctx.store.set_total("numIssueEvents", len(events))

    issuers = unique_addresses(events, "account")
    log.info("  > found %d unique addresses in the events", len(issuers))
    ctx.store.set_total("numIssuers", len(issuers))

    def read_balance(address: str):
        balance = susd.call("balanceOf", address, block_tag=block)
        if balance <= minimum:
            return None
        log.info("    > Issuer %s: %s sUSD", address, amounts.format_units(balance))
        return {"balance": str(balance)}, {"total": balance, "totalIssuers": 1}

    log.info("2) Reading balance of all accounts that ever issued...")
    ActionExecutor(ctx).read_all(issuers, read_balance, workers=workers, prefix="issuers")
    return issuers


def _main(args, settings: Settings) -> None:
    cli.require(args.data_file, "Please specify a JSON output file")
    network = ensure_network(args.network)
    provider_url = resolve_provider_url(network, args.provider_url, settings)
    minimum = amounts.parse_units(args.minimum_balance)

    path = deployment_path_for(args.deployment_path, settings.deployments_root, network, use_ovm=True)
    susd_address = resolve_target(path, "ProxyERC20sUSD", OVM_MAINNET_TOKENS if network == "mainnet" else None)

    rpc = RpcClient(provider_url)
    store = LedgerStore(args.data_file, DEFAULT_TOTALS)
    ctx = RunContext(rpc=rpc, store=store)
    get_issuer_balances(ctx, Contract(rpc, susd_address, ERC20_ABI), minimum, args.workers)
    log.info(
        "Issuers above %s sUSD: %s, holding %s sUSD",
        args.minimum_balance, store.totals["totalIssuers"], amounts.format_units(store.totals["total"]),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Calculates all issuer balances in L2")
    cli.add_provider_args(p, network_default="mainnet")
    p.add_argument("--data-file", help="The json file where all output will be stored")
    p.add_argument("--deployment-path", help="Specify the path to the deployment data directory")
    p.add_argument("--minimum-balance", default="1", help="Minimum sUSD balance to consider for holding")
    p.add_argument("--workers", default=1, type=int, help="Concurrent balance reads")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
