"""
Distributes a fixed SNX pool among the L2 trial participants, in proportion
to what each of them had escrowed (see calculate_l2_trial_scores).

Reuses the scores ledger: each account gains {"distributed", "sent", "tx"}
once its transfer is confirmed, so an interrupted run can simply be started
again and will only pay the accounts that are still missing.
"""

import logging
import sys
from typing import Dict, Optional, Sequence, Tuple

from synthetix_scripts import cli
from synthetix_scripts.config import Settings, ensure_network, resolve_provider_url
from synthetix_scripts.deployments import deployment_path_for, resolve_target
from synthetix_scripts.executor import SENT_FLAG, ActionExecutor, BatchSummary, PendingAction, RunContext
from synthetix_scripts.ledger import amounts
from synthetix_scripts.ledger.store import LedgerStore
from synthetix_scripts.on_chain.abi import Contract
from synthetix_scripts.on_chain.rpc import RpcClient
from synthetix_scripts.on_chain.tx import TxResult
from synthetix_scripts.variables import DEFAULT_GAS_LIMIT, ERC20_ABI, OVM_MAINNET_TOKENS

log = logging.getLogger(__name__)


def plan_distribution(store: LedgerStore, pool: amounts.Amount) -> Tuple[int, Dict[str, int]]:
    """Multiplier and per-account shares for everyone not yet paid.

    The multiplier is always derived from the full escrowed total, so shares do
    not change when a run is resumed.
    """
    multiplier = amounts.reward_multiplier(pool, store.totals.get("escrowed", "0"))
    shares: Dict[str, int] = {}
    for address, record in store.accounts.items():
        if record.get(SENT_FLAG):
            continue
        escrowed = amounts.to_int(record.get("escrowed", "0"))
        if escrowed <= 0:
            continue
        share = amounts.proportional_share(escrowed, multiplier)
        if share > 0:
            shares[address] = share
    return multiplier, shares


def distribute(
    ctx: RunContext,
    token: Contract,
    pool: amounts.Amount,
    gas_price: int,
    gas_limit: int = DEFAULT_GAS_LIMIT,
) -> BatchSummary:
    multiplier, shares = plan_distribution(ctx.store, pool)
    pending = sum(shares.values())
    signer = ctx.sender.address if ctx.sender else None
    signer_balance = token.call("balanceOf", signer) if signer else 0

    cli.review(
        "Please review this information before distributing:",
        {
            "Signer": signer or "<none>",
            "Signer SNX balance": amounts.format_units(signer_balance),
            "Total escrowed": amounts.format_units(ctx.store.totals.get("escrowed", "0")),
            "Rewards pool": amounts.format_units(pool),
            "Multiplier": f"{multiplier} / {amounts.PRECISION}",
            "Accounts pending": len(shares),
            "SNX pending": amounts.format_units(pending),
            "Gas price": f"{amounts.format_units(gas_price, 9)} gwei",
            "Dry run": ctx.dry_run,
        },
    )
    if not ctx.dry_run:
        ActionExecutor.ensure_signer_balance(signer, signer_balance, pending)
    ctx.confirm_or_abort()

    actions = [
        PendingAction(
            address=address,
            amount=share,
            function=token.function("transfer", address, share),
            gas_price=gas_price,
            gas_limit=gas_limit,
        )
        for address, share in shares.items()
    ]

    def on_confirmed(action: PendingAction, result: TxResult):
        return {"distributed": str(action.amount)}, {"distributed": action.amount}

    def after_confirmed(action: PendingAction) -> None:
        balance = token.call("balanceOf", action.address)
        ctx.store.update(action.address, {"balance": str(balance)})
        if balance < action.amount:
            log.warning(
                "    > %s holds %s SNX after receiving %s",
                action.address, amounts.format_units(balance), amounts.format_units(action.amount),
            )

    executor = ActionExecutor(ctx)
    return executor.write_all(actions, on_confirmed, after_confirmed)


def _main(args, settings: Settings) -> None:
    cli.require(args.data_file, "Please specify a JSON input file")
    network = ensure_network(args.network)
    provider_url = resolve_provider_url(network, args.provider_url, settings)
    pool = amounts.parse_units(cli.require(args.total_rewards, "Please specify the total amount of SNX to distribute"))

    path = deployment_path_for(args.deployment_path, settings.deployments_root, network, use_ovm=True)
    token_address = resolve_target(path, "ProxyERC20", OVM_MAINNET_TOKENS if network == "mainnet" else None)

    rpc = RpcClient(provider_url)
    store = LedgerStore(args.data_file, {"distributed": "0"})
    ctx = RunContext(
        rpc=rpc,
        store=store,
        sender=cli.make_sender(rpc, settings, required=not args.dry_run),
        dry_run=args.dry_run,
        yes=args.yes,
        confirm=cli.prompt_confirm,
        receipt_timeout_s=args.receipt_timeout,
    )
    token = Contract(rpc, token_address, ERC20_ABI)
    summary = distribute(ctx, token, pool, cli.parse_gwei(args.gas_price), args.gas_limit or DEFAULT_GAS_LIMIT)
    log.info("Total distributed: %s SNX", amounts.format_units(store.totals.get("distributed", "0")))
    if summary.failed:
        log.warning("%d transfers failed; run again to retry them", len(summary.failed))


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Distributes SNX rewards to the L2 trial participants")
    cli.add_provider_args(p, network_default="mainnet")
    cli.add_write_args(p, gas_price_default="0.015")
    p.add_argument("--data-file", help="The json file produced by calculate_l2_trial_scores")
    p.add_argument("--deployment-path", help="Specify the path to the deployment data directory")
    p.add_argument("--total-rewards", help="Amount of SNX to distribute, in SNX (e.g. 50000)")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
