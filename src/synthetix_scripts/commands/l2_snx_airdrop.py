"""
Transfers SNX on L2 to a list of addresses.

The target list is a JSON array:

    [{"Wallet address": "0x1234...", "SNX to pay": 50.04962378}, ...]

It is imported once into a ledger (`--ledger-file`, amounts in wei), which then
tracks which transfers went through.
"""

import json
import logging
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_account import Account
from eth_utils import is_address

from synthetix_scripts import cli
from synthetix_scripts.config import Settings, ensure_network, resolve_provider_url
from synthetix_scripts.deployments import deployment_path_for, resolve_target
from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.executor import SENT_FLAG, ActionExecutor, BatchSummary, PendingAction, RunContext
from synthetix_scripts.ledger import amounts
from synthetix_scripts.ledger.store import LedgerStore
from synthetix_scripts.on_chain.abi import Contract
from synthetix_scripts.on_chain.rpc import RpcClient
from synthetix_scripts.on_chain.tx import TxResult
from synthetix_scripts.variables import DEFAULT_GAS_LIMIT, ERC20_ABI, OVM_MAINNET_TOKENS

log = logging.getLogger(__name__)

ADDRESS_FIELD = "Wallet address"
AMOUNT_FIELD = "SNX to pay"


def read_targets(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        raise InvalidInput(f"No file at {path}")
    with path.open("r", encoding="utf-8") as f:
        # amounts come as JSON numbers; keep them exact
        targets = json.load(f, parse_float=Decimal)
    if not isinstance(targets, list):
        raise InvalidInput(f"{path} must contain a JSON array of targets")
    return targets


def address_from_private_key(value: str) -> Optional[str]:
    try:
        return Account.from_key(value).address
    except (ValueError, TypeError):
        return None


def parse_targets(targets: Sequence[Dict[str, Any]]) -> Tuple[List[Tuple[str, int]], List[str]]:
    """Validate every target up front.

    Returns (address, amount in wei) pairs and the rejected addresses. A bad
    amount raises InvalidInput, so nothing is imported from a broken file.
    """
    valid: List[Tuple[str, int]] = []
    rejected: List[str] = []
    for i, target in enumerate(targets, 1):
        if not isinstance(target, dict):
            raise InvalidInput(f"target {i} is not an object: {target!r}")
        raw = str(target.get(ADDRESS_FIELD, "")).strip()
        if not is_address(raw):
            log.warning("  > %d/%d - Invalid address %s", i, len(targets), raw)
            possible = address_from_private_key(raw)
            if possible:
                log.warning("    This looks like a private key, did you mean %s", possible)
            rejected.append(raw)
            continue
        amount = amounts.parse_units(target.get(AMOUNT_FIELD, "0"))
        if amount < 0:
            raise InvalidInput(f"negative amount for {raw}: {target.get(AMOUNT_FIELD)}")
        valid.append((raw.lower(), amount))
    return valid, rejected


def import_targets(store: LedgerStore, targets: Sequence[Tuple[str, int]]) -> int:
    """Add targets the ledger does not know yet; returns how many were added."""
    added = 0
    for address, amount in targets:
        if store.has(address):
            continue
        store.update(address, {"amount": str(amount)}, {"total": amount})
        added += 1
    return added


def airdrop(ctx: RunContext, token: Contract, gas_price: int, gas_limit: int = DEFAULT_GAS_LIMIT) -> BatchSummary:
    pending = {
        address: amounts.to_int(record.get("amount", "0"))
        for address, record in ctx.store.accounts.items()
        if not record.get(SENT_FLAG) and amounts.to_int(record.get("amount", "0")) > 0
    }
    total_pending = sum(pending.values())
    signer = ctx.sender.address if ctx.sender else None
    signer_balance = token.call("balanceOf", signer) if signer else 0

    log.info("Total %d accounts, still need to send to %d", len(ctx.store.accounts), len(pending))
    cli.review(
        "Please review this information before continuing:",
        {
            "Token": token.address,
            "Signer": signer or "<none>",
            "Signer balance": amounts.format_units(signer_balance),
            "SNX pending": amounts.format_units(total_pending),
            "Gas price": f"{amounts.format_units(gas_price, 9)} gwei",
            "Dry run": ctx.dry_run,
        },
    )
    if not ctx.dry_run:
        ActionExecutor.ensure_signer_balance(signer, signer_balance, total_pending)
    ctx.confirm_or_abort()

    actions = [
        PendingAction(address, amount, token.function("transfer", address, amount), gas_price, gas_limit)
        for address, amount in pending.items()
    ]

    def on_confirmed(action: PendingAction, result: TxResult):
        return {}, {"totalSent": action.amount}

    log.info("Starting SNX transfers...")
    return ActionExecutor(ctx).write_all(actions, on_confirmed)


def _main(args, settings: Settings) -> None:
    network = ensure_network(args.network)
    provider_url = resolve_provider_url(network, args.provider_url, settings)
    ledger_file = args.ledger_file or (f"{args.data_file}.ledger.json" if args.data_file else None)
    cli.require(ledger_file, "Please specify a --data-file or a --ledger-file")

    # everything is checked before the ledger is touched
    targets: List[Tuple[str, int]] = []
    if args.data_file:
        targets, rejected = parse_targets(read_targets(Path(args.data_file)))
        if rejected:
            log.warning("%d targets were skipped because of invalid addresses", len(rejected))
    path = deployment_path_for(args.deployment_path, settings.deployments_root, network, use_ovm=True)
    token_address = resolve_target(path, "ProxyERC20", OVM_MAINNET_TOKENS if network == "mainnet" else None)
    rpc = RpcClient(provider_url)
    sender = cli.make_sender(rpc, settings, required=not args.dry_run)
    token = Contract(rpc, token_address, ERC20_ABI)

    store = LedgerStore(ledger_file, {"total": "0", "totalSent": "0"})
    added = import_targets(store, targets)
    log.info("Imported %d new targets", added)
    ctx = RunContext(
        rpc=rpc,
        store=store,
        sender=sender,
        dry_run=args.dry_run,
        yes=args.yes,
        confirm=cli.prompt_confirm,
        receipt_timeout_s=args.receipt_timeout,
    )
    airdrop(ctx, token, cli.parse_gwei(args.gas_price), args.gas_limit or DEFAULT_GAS_LIMIT)
    log.info("Done.")


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Transfer SNX to a set of addresses specified in a JSON file")
    cli.add_provider_args(p, network_default="mainnet")
    cli.add_write_args(p, gas_price_default="0.015")
    p.add_argument("--data-file", help="The json file where target accounts are enumerated")
    p.add_argument("--ledger-file", help="Where progress is tracked (default: <data-file>.ledger.json)")
    p.add_argument("--deployment-path", help="Specify the path to the deployment data directory")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
