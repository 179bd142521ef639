"""
Tops up the L2 WETH balance of every SNX holder (more than 1 SNX, as listed by
get_all_l2_active_snx_holders) to a fixed amount.

The holders file is only read. Transfers are tracked in a separate ledger so a
rerun never pays the same account twice, whatever its WETH balance is by then.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from synthetix_scripts import cli
from synthetix_scripts.config import Settings, ensure_network, resolve_provider_url
from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.executor import ActionExecutor, BatchSummary, PendingAction, RunContext
from synthetix_scripts.ledger import amounts
from synthetix_scripts.ledger.store import Ledger, LedgerStore, load_ledger
from synthetix_scripts.on_chain.abi import Contract
from synthetix_scripts.on_chain.rpc import RpcClient
from synthetix_scripts.on_chain.tx import TxResult
from synthetix_scripts.progress import Progress
from synthetix_scripts.variables import DEFAULT_GAS_LIMIT, ERC20_ABI, OVM_MAINNET_TOKENS

log = logging.getLogger(__name__)

MIN_SNX = amounts.parse_units("1")


def snx_holders(holders: Ledger, minimum: int = MIN_SNX) -> List[str]:
    out = []
    for address, record in holders.accounts.items():
        balance = amounts.to_int((record.get("balances") or {}).get("SNX", "0"))
        if balance > minimum:
            out.append(address)
    return out


def plan_top_ups(ctx: RunContext, weth: Contract, targets: Sequence[str], amount_to_drop: int) -> Dict[str, int]:
    executor = ActionExecutor(ctx)
    todo = [a for a in targets if not executor.is_complete(a)]
    log.info("1. Checking WETH balances on %d potential target accounts...", len(todo))
    deltas: Dict[str, int] = {}
    progress = Progress(len(todo), prefix="weth")
    for i, address in enumerate(todo, 1):
        balance = weth.call("balanceOf", address)
        delta = amount_to_drop - balance
        if delta > 0:
            log.debug("  * %s has %s WETH, will need %s", address, amounts.format_units(balance), amounts.format_units(delta))
            deltas[address] = delta
        progress.update(i)
    progress.finish()
    return deltas


def airdrop_weth(
    ctx: RunContext,
    weth: Contract,
    holders: Ledger,
    amount_to_drop: int,
    gas_price: int,
    gas_limit: int = DEFAULT_GAS_LIMIT,
) -> Optional[BatchSummary]:
    targets = snx_holders(holders)
    log.info("All accounts: %d, filtered accounts: %d", len(holders.accounts), len(targets))

    deltas = plan_top_ups(ctx, weth, targets, amount_to_drop)
    if not deltas:
        log.info("No WETH needs to be airdropped")
        return None
    total = sum(deltas.values())

    signer = ctx.sender.address if ctx.sender else None
    signer_balance = weth.call("balanceOf", signer) if signer else 0
    cli.review(
        "Please review this information before continuing:",
        {
            "WETH": weth.address,
            "Total accounts to drop to": len(deltas),
            "Target WETH balance for each": amounts.format_units(amount_to_drop),
            "Total WETH to be dropped": amounts.format_units(total),
            "Signer": signer or "<none>",
            "Signer balance": amounts.format_units(signer_balance),
            "Gas price": f"{amounts.format_units(gas_price, 9)} gwei",
            "Dry run": ctx.dry_run,
        },
    )
    if not ctx.dry_run:
        ActionExecutor.ensure_signer_balance(signer, signer_balance, total)
    ctx.confirm_or_abort()

    actions = [
        PendingAction(address, delta, weth.function("transfer", address, delta), gas_price, gas_limit)
        for address, delta in deltas.items()
    ]

    def on_confirmed(action: PendingAction, result: TxResult):
        return {"dropped": str(action.amount)}, {"dropped": action.amount, "numDropped": 1}

    log.info("2. Airdropping WETH to %d accounts...", len(actions))
    return ActionExecutor(ctx).write_all(actions, on_confirmed)


def _main(args, settings: Settings) -> None:
    network = ensure_network(args.network)
    provider_url = resolve_provider_url(network, args.provider_url, settings)
    cli.require(args.data_file, "Please specify a JSON input file")
    holders_path = Path(args.data_file)
    if not holders_path.exists():
        raise InvalidInput(f"No file at {holders_path}")
    weth_address = args.weth_address or (OVM_MAINNET_TOKENS["WETH"] if network == "mainnet" else None)
    weth_address = cli.require_address(weth_address, "target WETH address")
    amount_to_drop = amounts.parse_units(args.amount_to_drop)

    rpc = RpcClient(provider_url)
    store = LedgerStore(args.ledger_file or f"{holders_path}.weth.json", {"dropped": "0", "numDropped": "0"})
    ctx = RunContext(
        rpc=rpc,
        store=store,
        sender=cli.make_sender(rpc, settings, required=not args.dry_run),
        dry_run=args.dry_run,
        yes=args.yes,
        confirm=cli.prompt_confirm,
        receipt_timeout_s=args.receipt_timeout,
    )
    weth = Contract(rpc, weth_address, ERC20_ABI)
    airdrop_weth(ctx, weth, load_ledger(holders_path), amount_to_drop, cli.parse_gwei(args.gas_price), args.gas_limit or DEFAULT_GAS_LIMIT)
    log.info("Done.")


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Airdrops L2 WETH on a list of accounts")
    cli.add_provider_args(p, network_default="kovan")
    cli.add_write_args(p, gas_price_default="0")
    p.add_argument("--data-file", help="The json file where target accounts are stored (from get_all_l2_active_snx_holders)")
    p.add_argument("--ledger-file", help="Where transfers are tracked (default: <data-file>.weth.json)")
    p.add_argument("--amount-to-drop", default="0.05", help="The WETH balance each account should end up with")
    p.add_argument("--weth-address", help="The address of the WETH token in L2")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
