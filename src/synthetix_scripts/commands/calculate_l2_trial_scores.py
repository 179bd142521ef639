"""
Records, for every account that ever initiated an L2 -> L1 withdrawal during
the L2 trial, how much SNX it has in RewardEscrow on L2.

Output ledger:
    totals:   escrowed, numWithdrawers, numEscrowsChecked
    accounts: {address: {"escrowed": "<wei>"}}

Usage:
    python -m synthetix_scripts.commands.calculate_l2_trial_scores --data-file data/l2-trial.json \
        --provider-url https://goerli.optimism.io
"""

import logging
import sys
from typing import List, Optional, Sequence

from synthetix_scripts import cli
from synthetix_scripts.config import Settings, ensure_network, resolve_provider_url
from synthetix_scripts.deployments import deployment_path_for, get_target, get_versions
from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.executor import ActionExecutor, RunContext
from synthetix_scripts.ledger.amounts import format_units
from synthetix_scripts.ledger.store import LedgerStore
from synthetix_scripts.on_chain.abi import Contract
from synthetix_scripts.on_chain.events import scan_versions, unique_addresses
from synthetix_scripts.on_chain.rpc import BlockTag, RpcClient
from synthetix_scripts.variables import ERC20_ABI, WITHDRAWAL_INITIATED_EVENT

log = logging.getLogger(__name__)

BRIDGE_CONTRACT = "SynthetixBridgeToBase"
DEFAULT_TOTALS = {"escrowed": "0", "numWithdrawers": "0", "numEscrowsChecked": "0"}


def calculate_scores(
    ctx: RunContext,
    bridge_versions: Sequence[str],
    reward_escrow: Contract,
    from_block: BlockTag = "earliest",
    to_block: BlockTag = "latest",
) -> List[str]:
    log.info("1) Looking for WithdrawalInitiated events in %d versions of %s...", len(bridge_versions), BRIDGE_CONTRACT)
    events = scan_versions(ctx.rpc, bridge_versions, WITHDRAWAL_INITIATED_EVENT, from_block, to_block)
    withdrawers = unique_addresses(events, "account")
    ctx.store.set_total("numWithdrawers", len(withdrawers))

    def read_escrow(address: str):
        escrowed = reward_escrow.call("balanceOf", address)
        log.info("    > %s escrowed: %s SNX", address, format_units(escrowed))
        return {"escrowed": str(escrowed)}, {"escrowed": escrowed, "numEscrowsChecked": 1}

    log.info("2) Checking escrowed SNX for %d accounts that withdrew...", len(withdrawers))
    ActionExecutor(ctx).read_all(withdrawers, read_escrow, prefix="escrow")
    return withdrawers


def _main(args, settings: Settings) -> None:
    cli.require(args.data_file, "Please specify a JSON output file")
    network = ensure_network(args.network)
    provider_url = resolve_provider_url(network, args.provider_url, settings)

    path = deployment_path_for(args.deployment_path, settings.deployments_root, network, use_ovm=True)
    if path is None:
        raise InvalidInput("Please specify --deployment-path (or SYNTHETIX_DEPLOYMENTS)")
    versions = get_versions(path, BRIDGE_CONTRACT)
    for i, address in enumerate(versions):
        log.info("  > Version %d: %s", i, address)

    rpc = RpcClient(provider_url)
    store = LedgerStore(args.data_file, DEFAULT_TOTALS)
    reward_escrow = Contract(rpc, get_target(path, "RewardEscrow"), ERC20_ABI)
    ctx = RunContext(rpc=rpc, store=store)
    calculate_scores(ctx, versions, reward_escrow, args.from_block, args.to_block)
    log.info("Total escrowed: %s SNX", format_units(store.totals["escrowed"]))


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Calculates L2 trial scores and outputs them in a JSON file")
    cli.add_provider_args(p, network_default="goerli")
    p.add_argument("--data-file", help="The json file where all output will be stored")
    p.add_argument("--deployment-path", help="Specify the path to the deployment data directory")
    p.add_argument("--from-block", default="earliest")
    p.add_argument("--to-block", default="latest")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
