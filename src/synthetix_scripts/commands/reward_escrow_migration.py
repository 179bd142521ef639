"""
Moves escrow from the old RewardEscrow into RewardEscrowV2.

1. For every account in the input list, records its old escrowed and vested
   balances, its vesting schedule and what RewardEscrowV2 already holds for it.
2. Accounts with nothing on RewardEscrowV2 yet are migrated with
   migrateAccountEscrowBalances, 500 per transaction.
3. Vesting schedules are imported with importVestingSchedule, about 200
   entries per transaction. An account's entries never span two transactions.

Input: a JSON array of {"address": "0x..."}.

Output ledger:
    totals:   accounts, escrowed, vested, entries, migrated, imported
    accounts: {address: {"balance", "vested", "schedule": [[timestamp, amount], ...],
                         "pendingMigration", "hasEscrowBalance", "numVestingEntries",
                         "migrated", "migratedTx", "imported", "importedTx"}}
"""

import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from eth_utils import is_address
from web3.contract.contract import ContractFunction

from synthetix_scripts import cli
from synthetix_scripts.config import Settings, ensure_network, resolve_provider_url
from synthetix_scripts.deployments import deployment_path_for, get_source_abi, get_target
from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.executor import ActionExecutor, BatchAction, BatchSummary, RunContext
from synthetix_scripts.ledger import amounts
from synthetix_scripts.ledger.store import LedgerStore
from synthetix_scripts.on_chain.abi import Contract
from synthetix_scripts.on_chain.rpc import RpcClient
from synthetix_scripts.variables import DEFAULT_GAS_LIMIT

log = logging.getLogger(__name__)

MIGRATION_PAGE_SIZE = 500
ENTRY_BATCH_SIZE = 200
MIGRATED_FLAG = "migrated"
IMPORTED_FLAG = "imported"

DEFAULT_TOTALS = {
    "accounts": "0",
    "escrowed": "0",
    "vested": "0",
    "entries": "0",
    "migrated": "0",
    "imported": "0",
}


def read_accounts_file(path: Path) -> List[str]:
    if not path.exists():
        raise InvalidInput(f"No file at {path}")
    with path.open("r", encoding="utf-8") as f:
        entries = json.load(f)
    if not isinstance(entries, list):
        raise InvalidInput(f"{path} must contain a JSON array of accounts")
    out = []
    for entry in entries:
        address = entry.get("address") if isinstance(entry, dict) else None
        if not address or not is_address(address):
            raise InvalidInput(f"Invalid account entry: {entry!r}")
        out.append(address.lower())
    log.info("Found %d accounts", len(out))
    return out


def parse_schedule(address: str, flat: Sequence[int]) -> List[List[str]]:
    """checkAccountSchedule returns [time, amount, time, amount, ...], zero padded."""
    schedule = []
    for i in range(0, len(flat) - 1, 2):
        timestamp, amount = int(flat[i]), int(flat[i + 1])
        if timestamp == 0 and amount == 0:
            continue
        if timestamp == 0 or amount == 0:
            log.warning("Address %s has an entry with one side 0: (%d, %d)", address, timestamp, amount)
        schedule.append([str(timestamp), str(amount)])
    return schedule


def read_escrows(ctx: RunContext, old_escrow: Contract, new_escrow: Contract, accounts: Sequence[str], workers: int = 1) -> None:
    def read_account(address: str):
        pending = new_escrow.call("totalBalancePendingMigration", address) > 0
        escrowed = new_escrow.call("totalEscrowedAccountBalance", address) > 0
        num_entries = new_escrow.call("numVestingEntries", address)
        if pending:
            log.info("Note: %s already migrated, pending entry import", address)
        elif escrowed:
            log.info("Note: %s escrow amounts already exist", address)

        balance = old_escrow.call("totalEscrowedAccountBalance", address)
        vested = old_escrow.call("totalVestedAccountBalance", address)
        schedule = parse_schedule(address, old_escrow.call("checkAccountSchedule", address))
        patch = {
            "balance": str(balance),
            "vested": str(vested),
            "schedule": schedule,
            "pendingMigration": pending,
            "hasEscrowBalance": escrowed,
            "numVestingEntries": str(num_entries),
        }
        return patch, {"accounts": 1, "escrowed": balance, "vested": vested, "entries": len(schedule)}

    log.info("1) Reading escrow of %d accounts...", len(accounts))
    ActionExecutor(ctx).read_all(accounts, read_account, workers=workers, prefix="escrow")


def accounts_to_migrate(store: LedgerStore, accounts: Sequence[str]) -> List[str]:
    out = []
    for address in accounts:
        record = store.get(address) or {}
        if record.get("pendingMigration") or record.get("hasEscrowBalance"):
            continue
        out.append(address)
    return out


def accounts_to_import(store: LedgerStore, accounts: Sequence[str]) -> List[str]:
    out = []
    for address in accounts:
        record = store.get(address) or {}
        schedule = record.get("schedule") or []
        existing = amounts.to_int(record.get("numVestingEntries", "0"))
        if not schedule:
            continue
        if existing == len(schedule):
            log.info("Note: %s already has its %d vesting entries", address, existing)
            continue
        if existing:
            log.warning("Warning: address %s already has %d entries instead of %d", address, existing, len(schedule))
            continue
        out.append(address)
    return out


def pack_by_entries(store: LedgerStore, accounts: Sequence[str], size: int = ENTRY_BATCH_SIZE) -> List[List[str]]:
    """Group whole accounts into batches of at most `size` entries (more only for one oversized account)."""
    batches: List[List[str]] = []
    current: List[str] = []
    count = 0
    for address in accounts:
        n = len((store.get(address) or {}).get("schedule") or [])
        if current and count + n > size:
            batches.append(current)
            current, count = [], 0
        current.append(address)
        count += n
    if current:
        batches.append(current)
    return batches


def migration_function(store: LedgerStore, new_escrow: Contract):
    def build(addresses: List[str]) -> ContractFunction:
        records = [store.get(a) or {} for a in addresses]
        return new_escrow.function(
            "migrateAccountEscrowBalances",
            addresses,
            [int(r.get("balance", "0")) for r in records],
            [int(r.get("vested", "0")) for r in records],
        )

    return build


def import_function(store: LedgerStore, new_escrow: Contract):
    def build(addresses: List[str]) -> ContractFunction:
        owners: List[str] = []
        timestamps: List[int] = []
        entries: List[int] = []
        for address in addresses:
            for timestamp, amount in (store.get(address) or {}).get("schedule") or []:
                owners.append(address)
                timestamps.append(int(timestamp))
                entries.append(int(amount))
        return new_escrow.function("importVestingSchedule", owners, timestamps, entries)

    return build


def migrate(
    ctx: RunContext,
    old_escrow: Contract,
    new_escrow: Contract,
    accounts: Sequence[str],
    gas_price: int,
    gas_limit: int = DEFAULT_GAS_LIMIT,
    workers: int = 1,
) -> Dict[str, BatchSummary]:
    accounts = list(dict.fromkeys(a.lower() for a in accounts))
    read_escrows(ctx, old_escrow, new_escrow, accounts, workers)

    to_migrate = accounts_to_migrate(ctx.store, accounts)
    to_import = accounts_to_import(ctx.store, accounts)
    migration_pages = [to_migrate[i : i + MIGRATION_PAGE_SIZE] for i in range(0, len(to_migrate), MIGRATION_PAGE_SIZE)]
    import_batches = pack_by_entries(ctx.store, to_import)

    cli.review(
        "Please review this information before migrating:",
        {
            "RewardEscrow": old_escrow.address,
            "RewardEscrowV2": new_escrow.address,
            "Signer": ctx.sender.address if ctx.sender else "<none>",
            "Accounts read": len(accounts),
            "Accounts to migrate": f"{len(to_migrate)} in {len(migration_pages)} transactions",
            "Accounts to import schedules for": f"{len(to_import)} in {len(import_batches)} transactions",
            "Gas price": f"{amounts.format_units(gas_price, 9)} gwei",
            "Dry run": ctx.dry_run,
        },
    )
    ctx.confirm_or_abort()

    executor = ActionExecutor(ctx)
    log.info("2) Migrating escrow balances...")
    migrated = executor.write_batches(
        [BatchAction(page, migration_function(ctx.store, new_escrow), gas_price, gas_limit) for page in migration_pages],
        MIGRATED_FLAG,
        total="migrated",
    )
    log.info("3) Importing vesting entries...")
    imported = executor.write_batches(
        [BatchAction(batch, import_function(ctx.store, new_escrow), gas_price, gas_limit) for batch in import_batches],
        IMPORTED_FLAG,
        total="imported",
    )
    return {MIGRATED_FLAG: migrated, IMPORTED_FLAG: imported}


def _main(args, settings: Settings) -> None:
    cli.require(args.account_json, "Please specify the accounts json file")
    network = ensure_network(args.network)
    provider_url = resolve_provider_url(network, args.provider_url, settings, use_default=False)
    accounts = read_accounts_file(Path(args.account_json))

    path = deployment_path_for(args.deployment_path, settings.deployments_root, network)
    if path is None:
        raise InvalidInput("Please specify --deployment-path (or SYNTHETIX_DEPLOYMENTS)")
    rpc = RpcClient(provider_url)
    sender = cli.make_sender(rpc, settings, required=not args.dry_run)
    old_escrow = Contract(rpc, get_target(path, "RewardEscrow"), get_source_abi(path, "RewardEscrow"))
    new_escrow = Contract(rpc, get_target(path, "RewardEscrowV2"), get_source_abi(path, "RewardEscrowV2"))

    store = LedgerStore(args.ledger_file or f"{args.account_json}.migration.json", DEFAULT_TOTALS)
    ctx = RunContext(
        rpc=rpc,
        store=store,
        sender=sender,
        dry_run=args.dry_run,
        yes=args.yes,
        confirm=cli.prompt_confirm,
        receipt_timeout_s=args.receipt_timeout,
    )
    summaries = migrate(
        ctx, old_escrow, new_escrow, accounts, cli.parse_gwei(args.gas_price), args.gas_limit or DEFAULT_GAS_LIMIT, args.workers
    )
    failed = sum(len(s.failed) for s in summaries.values())
    if failed:
        log.warning("%d accounts are still open; run again to retry them", failed)


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Reward Escrow Migration")
    cli.add_provider_args(p, network_default="mainnet")
    cli.add_write_args(p, gas_price_default="1")
    p.add_argument("--account-json", help="The accounts that hold escrow, as [{\"address\": ...}]")
    p.add_argument("--ledger-file", help="Where progress is tracked (default: <account-json>.migration.json)")
    p.add_argument("--deployment-path", help="Specify the path to the deployment data directory")
    p.add_argument("--workers", default=1, type=int, help="Concurrent escrow reads")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
