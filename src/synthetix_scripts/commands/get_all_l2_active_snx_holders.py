"""
Lists every account that ever moved SNX to Optimism through the L1 bridge
(deposits or escrow migrations, across every bridge deployment) together with
its current L2 SNX and sUSD balances.

Output ledger:
    totals:   blockNumber, depositors, holdersSNX, holdersSUSD, balanceSNX, balanceSUSD
    accounts: {address: {"balances": {"SNX": "<wei>", "sUSD": "<wei>"}}}
"""

import logging
import sys
from typing import List, Optional, Sequence

from synthetix_scripts import cli
from synthetix_scripts.config import Settings, resolve_provider_url
from synthetix_scripts.deployments import deployment_path_for, get_versions, resolve_target
from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.executor import ActionExecutor, RunContext, snapshot_block
from synthetix_scripts.ledger import amounts
from synthetix_scripts.ledger.store import LedgerStore
from synthetix_scripts.on_chain.abi import Contract
from synthetix_scripts.on_chain.events import KnownDeployment, collect_candidates, verify_deployment_set
from synthetix_scripts.on_chain.rpc import BlockTag, RpcClient
from synthetix_scripts.variables import (
    BRIDGE_REGISTRY_CONTRACT,
    ERC20_ABI,
    KNOWN_BRIDGES,
    OVM_MAINNET_TOKENS,
    READ_POOL_WIDTH,
)

log = logging.getLogger(__name__)

DEFAULT_TOTALS = {
    "depositors": "0",
    "holdersSNX": "0",
    "holdersSUSD": "0",
    "balanceSNX": "0",
    "balanceSUSD": "0",
}


def known_bridges() -> List[KnownDeployment]:
    return [KnownDeployment.from_dict(d) for d in KNOWN_BRIDGES]


def get_active_holders(
    l1_rpc: RpcClient,
    ctx: RunContext,
    bridges: Sequence[KnownDeployment],
    registered: Sequence[str],
    snx: Contract,
    susd: Contract,
    to_block: BlockTag = "latest",
    workers: int = READ_POOL_WIDTH,
) -> List[str]:
    """`ctx.rpc` talks to L2; `l1_rpc` is only used to find the depositors.

    L2 balances are read at one pinned L2 block, recorded in the ledger so a
    resumed run reads the same snapshot.
    """
    verify_deployment_set([b.address for b in bridges], registered)
    block = snapshot_block(ctx)
    candidates = collect_candidates(l1_rpc, bridges, to_block)
    ctx.store.set_total("depositors", len(candidates))

    def read_balances(address: str):
        balance_snx = snx.call("balanceOf", address, block_tag=block)
        balance_susd = susd.call("balanceOf", address, block_tag=block)
        log.debug("    > %s SNX %s sUSD %s", address, balance_snx, balance_susd)
        patch = {"balances": {"SNX": str(balance_snx), "sUSD": str(balance_susd)}}
        totals = {
            "holdersSNX": 1 if balance_snx > 0 else 0,
            "holdersSUSD": 1 if balance_susd > 0 else 0,
            "balanceSNX": balance_snx,
            "balanceSUSD": balance_susd,
        }
        return patch, totals

    log.info("Reading L2 balances for %d accounts...", len(candidates))
    ActionExecutor(ctx).read_all(candidates, read_balances, workers=workers, prefix="balances")
    return candidates


def _main(args, settings: Settings) -> None:
    cli.require(args.data_file, "Please specify a JSON output file")
    l1_url = resolve_provider_url("mainnet", args.l1_provider_url, settings, use_default=False)
    l2_url = args.l2_provider_url or resolve_provider_url("mainnet", None, None)

    l1_path = deployment_path_for(args.l1_deployment_path, settings.deployments_root, "mainnet")
    if l1_path is None:
        raise InvalidInput("Please specify --l1-deployment-path (or SYNTHETIX_DEPLOYMENTS)")
    registered = get_versions(l1_path, BRIDGE_REGISTRY_CONTRACT)

    l2_path = deployment_path_for(args.l2_deployment_path, settings.deployments_root, "mainnet", use_ovm=True)
    l1_rpc = RpcClient(l1_url)
    l2_rpc = RpcClient(l2_url)
    snx = Contract(l2_rpc, resolve_target(l2_path, "ProxyERC20", OVM_MAINNET_TOKENS), ERC20_ABI)
    susd = Contract(l2_rpc, resolve_target(l2_path, "ProxyERC20sUSD", OVM_MAINNET_TOKENS), ERC20_ABI)

    store = LedgerStore(args.data_file, DEFAULT_TOTALS, clear=args.clear)
    ctx = RunContext(rpc=l2_rpc, store=store)
    get_active_holders(l1_rpc, ctx, known_bridges(), registered, snx, susd, args.to_block, args.workers)

    totals = store.totals
    log.info("Depositors: %s", totals["depositors"])
    log.info("SNX holders: %s (%s SNX)", totals["holdersSNX"], amounts.format_units(totals["balanceSNX"]))
    log.info("sUSD holders: %s (%s sUSD)", totals["holdersSUSD"], amounts.format_units(totals["balanceSUSD"]))


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Get all L2 active SNX holders and their balances")
    p.add_argument("--l1-provider-url", help="L1 provider url (defaults to PROVIDER_URL)")
    p.add_argument("--l2-provider-url", help="L2 provider url")
    p.add_argument("--l1-deployment-path", help="Path to the L1 mainnet deployment data")
    p.add_argument("--l2-deployment-path", help="Path to the L2 mainnet-ovm deployment data")
    p.add_argument("--data-file", help="The json file where all output will be stored")
    p.add_argument("--to-block", default="latest", help="Last L1 block to scan for deposits")
    p.add_argument("--workers", default=READ_POOL_WIDTH, type=int, help="Concurrent balance reads")
    p.add_argument("--clear", action="store_true", help="Start from an empty ledger")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
