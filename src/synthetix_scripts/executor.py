"""
Action executor: visits each candidate address once, performs a read or a
write action for it and records the outcome in the ledger before moving on.

Reads may fan out over a small worker pool; ledger writes are serialized by the
store. Writes are strictly sequential: one transaction is confirmed (or given
up on) before the next is built, so nonces never need to be managed here.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from web3.contract.contract import ContractFunction

from synthetix_scripts.errors import Cancelled, InsufficientSignerBalance
from synthetix_scripts.ledger import amounts
from synthetix_scripts.ledger.store import LedgerStore
from synthetix_scripts.on_chain.rpc import RpcClient
from synthetix_scripts.on_chain.tx import SEND_ERRORS, TxResult, TxSender, TxStatus
from synthetix_scripts.progress import Progress
from synthetix_scripts.variables import DEFAULT_RECEIPT_TIMEOUT_S

log = logging.getLogger(__name__)

SENT_FLAG = "sent"
TX_FIELD = "tx"

Patch = Tuple[Mapping[str, Any], Optional[Mapping[str, amounts.Amount]]]
Reader = Callable[[str], Optional[Patch]]


def _always_yes(message: str) -> bool:
    return True


@dataclass
class RunContext:
    """Everything one run needs, built once and passed explicitly."""

    rpc: RpcClient
    store: LedgerStore
    sender: Optional[TxSender] = None
    dry_run: bool = False
    yes: bool = False
    confirm: Callable[[str], bool] = _always_yes
    receipt_timeout_s: float = DEFAULT_RECEIPT_TIMEOUT_S

    def confirm_or_abort(self, message: str = "Continue?") -> None:
        if self.yes:
            return
        if not self.confirm(message):
            raise Cancelled("User cancelled")


def snapshot_block(ctx: RunContext) -> int:
    """The block a read run is pinned to; taken on the first run and kept in the ledger."""
    recorded = ctx.store.totals.get("blockNumber")
    if recorded:
        log.info("Resuming snapshot at block %s", recorded)
        return amounts.to_int(recorded)
    block = ctx.rpc.block_number()
    log.info("Current block: %d", block)
    ctx.store.set_total("blockNumber", block)
    return block


@dataclass
class PendingAction:
    address: str
    amount: int
    function: ContractFunction
    gas_price: int
    gas_limit: int
    nonce: Optional[int] = None


@dataclass
class BatchAction:
    """One transaction settling several accounts.

    `function` gets the accounts of the batch that are still open, so a batch
    that was half recorded before an interruption is rebuilt without the rest.
    """

    addresses: List[str]
    function: Callable[[List[str]], ContractFunction]
    gas_price: int
    gas_limit: int


@dataclass
class BatchSummary:
    confirmed: List[str] = field(default_factory=list)
    failed: Dict[str, TxResult] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    simulated: List[str] = field(default_factory=list)


class ActionExecutor:
    def __init__(self, ctx: RunContext):
        self.ctx = ctx

    @property
    def store(self) -> LedgerStore:
        return self.ctx.store

    # ---------- Reads ----------
    def read_one(self, address: str, reader: Reader) -> Optional[Dict[str, Any]]:
        result = reader(address)
        if result is None:
            return None
        patch, totals = result
        return self.store.update(address, patch, totals)

    def read_all(
        self,
        candidates: Sequence[str],
        reader: Reader,
        *,
        skip_existing: bool = True,
        workers: int = 1,
        prefix: str = "read",
    ) -> int:
        """Run `reader` for each candidate and persist each result as it lands.

        Anything a reader raises aborts the run; everything already recorded
        stays in the ledger and a rerun carries on from there.
        """
        # case variants of one address are the same account
        todo = list(dict.fromkeys(a.lower() for a in candidates if not (skip_existing and self.store.has(a))))
        if len(todo) < len(candidates):
            log.info("Skipping %d accounts already in the ledger or listed twice", len(candidates) - len(todo))
        progress = Progress(len(todo), prefix=prefix)
        done = 0

        if workers <= 1:
            for address in todo:
                self.read_one(address, reader)
                done += 1
                progress.update(done)
            progress.finish()
            return done

        ex = ThreadPoolExecutor(max_workers=workers)
        try:
            futures = [ex.submit(self.read_one, address, reader) for address in todo]
            for fut in as_completed(futures):
                fut.result()
                done += 1
                progress.update(done)
        except BaseException:
            ex.shutdown(wait=True, cancel_futures=True)
            raise
        ex.shutdown(wait=True)
        progress.finish()
        return done

    # ---------- Writes ----------
    @staticmethod
    def ensure_signer_balance(signer: str, balance: int, pending: int) -> None:
        if balance < pending:
            raise InsufficientSignerBalance(signer, balance, pending)

    def is_complete(self, address: str) -> bool:
        record = self.store.get(address)
        return bool(record and record.get(SENT_FLAG))

    def write_one(
        self,
        action: PendingAction,
        on_confirmed: Callable[[PendingAction, TxResult], Patch],
        after_confirmed: Optional[Callable[[PendingAction], None]] = None,
    ) -> Optional[TxResult]:
        """A confirmed send is marked in the ledger before `on_confirmed` runs.

        `on_confirmed` must not touch the chain. Anything that fails for this one
        action is logged and reported in the result; the batch goes on.
        """
        if self.is_complete(action.address):
            log.info("    > %s already sent, skipping", action.address)
            return None

        if self.ctx.dry_run:
            log.info("    > [DRY-RUN] would send %s to %s", amounts.format_units(action.amount), action.address)
            return TxResult(TxStatus.BUILT)

        sender = self.ctx.sender
        if sender is None:
            raise RuntimeError("no signer configured for write actions")

        try:
            tx = sender.build(action.function, action.gas_price, action.gas_limit, action.nonce)
        except SEND_ERRORS as e:
            result = TxResult(TxStatus.ERRORED, error=e, reason=str(e))
        else:
            result = sender.run_tx(tx, self.ctx.receipt_timeout_s)

        if result.success:
            self.store.update(action.address, {SENT_FLAG: True, TX_FIELD: result.tx_hash})
            log.info("    > confirmed %s", result.tx_hash)
            try:
                patch, totals = on_confirmed(action, result)
            except Exception:
                log.exception("    > %s was paid in %s but its record could not be completed", action.address, result.tx_hash)
            else:
                self.store.update(action.address, patch, totals)
            if after_confirmed is not None:
                try:
                    after_confirmed(action)
                except SEND_ERRORS as e:
                    log.warning("    > post-send check failed for %s: %s", action.address, e)
        else:
            log.error(
                "    > %s while sending %s to %s (tx %s): %s",
                result.status.value,
                amounts.format_units(action.amount),
                action.address,
                result.tx_hash,
                result.reason or "<no reason>",
            )
        return result

    def write_all(
        self,
        actions: Iterable[PendingAction],
        on_confirmed: Callable[[PendingAction, TxResult], Patch],
        after_confirmed: Optional[Callable[[PendingAction], None]] = None,
    ) -> BatchSummary:
        """Send each action in order. Failures are logged and the batch continues."""
        actions = list(actions)
        summary = BatchSummary()
        for i, action in enumerate(actions, 1):
            log.info("  > %d/%d - %s: %s", i, len(actions), action.address, amounts.format_units(action.amount))
            result = self.write_one(action, on_confirmed, after_confirmed)
            if result is None:
                summary.skipped.append(action.address)
            elif result.status is TxStatus.BUILT:
                summary.simulated.append(action.address)
            elif result.success:
                summary.confirmed.append(action.address)
            else:
                summary.failed[action.address] = result
        log.info(
            "Confirmed %d, failed %d, skipped %d, simulated %d",
            len(summary.confirmed), len(summary.failed), len(summary.skipped), len(summary.simulated),
        )
        return summary

    def write_batches(self, batches: Iterable[BatchAction], flag: str, total: Optional[str] = None) -> BatchSummary:
        """Send each batch in order and set `flag` on all its accounts once confirmed.

        The transaction hash goes under `<flag>Tx`; `total`, when given, counts
        the accounts settled.
        """
        batches = list(batches)
        summary = BatchSummary()
        for i, batch in enumerate(batches, 1):
            todo = [a.lower() for a in batch.addresses if not (self.store.get(a) or {}).get(flag)]
            log.info("  > batch %d/%d - %d accounts, %d still open", i, len(batches), len(batch.addresses), len(todo))
            if not todo:
                summary.skipped.extend(a.lower() for a in batch.addresses)
                continue
            if self.ctx.dry_run:
                log.info("    > [DRY-RUN] would send a %s batch of %d accounts", flag, len(todo))
                summary.simulated.extend(todo)
                continue

            sender = self.ctx.sender
            if sender is None:
                raise RuntimeError("no signer configured for write actions")
            try:
                tx = sender.build(batch.function(todo), batch.gas_price, batch.gas_limit)
            except SEND_ERRORS as e:
                result = TxResult(TxStatus.ERRORED, error=e, reason=str(e))
            else:
                result = sender.run_tx(tx, self.ctx.receipt_timeout_s)

            if result.success:
                self.store.update_many(todo, {flag: True, f"{flag}Tx": result.tx_hash}, {total: len(todo)} if total else None)
                log.info("    > confirmed %s", result.tx_hash)
                summary.confirmed.extend(todo)
            else:
                log.error(
                    "    > %s on batch %d (tx %s): %s",
                    result.status.value, i, result.tx_hash, result.reason or "<no reason>",
                )
                for address in todo:
                    summary.failed[address] = result
        log.info(
            "Confirmed %d, failed %d, skipped %d, simulated %d accounts",
            len(summary.confirmed), len(summary.failed), len(summary.skipped), len(summary.simulated),
        )
        return summary
