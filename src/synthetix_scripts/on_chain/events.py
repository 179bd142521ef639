import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from synthetix_scripts.errors import RpcError, UnexpectedDeploymentSet
from synthetix_scripts.on_chain.abi import Event, ParsedEvent, events_from_abi
from synthetix_scripts.on_chain.rpc import BlockTag, RpcClient, to_block_hex
from synthetix_scripts.progress import Progress

log = logging.getLogger(__name__)

LIMIT_MESSAGES = (
    "timeout",
    "timed out",
    "rate limit",
    "too many",
    "limit",
    "response size",
    "log response",
    "range",
)


# ---------- Log scanning helpers ----------
def resolve_block(rpc: RpcClient, block: Optional[BlockTag], default: str) -> int:
    if block is None or block == "":
        block = default
    if isinstance(block, int):
        return block
    if str(block).isdigit():
        return int(block)
    if block == "earliest":
        return 0
    return rpc.get_block(block)["number"]


def fetch_logs(
    rpc: RpcClient,
    address: str,
    topics: Optional[List[Any]],
    from_block: BlockTag = "earliest",
    to_block: BlockTag = "latest",
    step: int = 50_000,
    min_step: int = 128,
) -> List[Dict[str, Any]]:
    """
    Fetch logs for `address` within [from_block, to_block], chunked to avoid provider limits.
    Auto-halves the window on timeout/oversize errors until `min_step`, then grows it back.
    """
    start = resolve_block(rpc, from_block, "earliest")
    end_block = resolve_block(rpc, to_block, "latest")

    all_logs: List[Dict[str, Any]] = []
    total_blocks = max(0, end_block - start + 1)
    progress = Progress(total_blocks, prefix="scan")

    cur_step = max(min_step, int(step))
    base_step = cur_step
    first = start
    while start <= end_block:
        end = min(start + cur_step - 1, end_block)
        flt: Dict[str, Any] = {
            "fromBlock": to_block_hex(start),
            "toBlock": to_block_hex(end),
            "address": address,
        }
        if topics:
            flt["topics"] = topics
        try:
            batch = rpc.get_logs(flt)
        except RpcError as e:
            msg = str(e).lower()
            retryable = any(s in msg for s in LIMIT_MESSAGES)
            if retryable and cur_step > min_step:
                cur_step = max(min_step, cur_step // 2)
                log.debug("eth_getLogs window too large, shrinking to %d blocks", cur_step)
                continue
            if retryable:
                # one brief pause at the floor, then a final try
                time.sleep(1.0)
                try:
                    batch = rpc.get_logs(flt)
                except RpcError as e2:
                    raise RpcError(f"eth_getLogs failed at [{start},{end}] with min_step={min_step}: {e2}") from e2
            else:
                raise

        all_logs.extend(batch or [])
        progress.update(end - first + 1)
        start = end + 1
        if cur_step < base_step:
            cur_step = min(base_step, cur_step * 2)

    progress.finish()
    return all_logs


def topics_for(events: Sequence[Event]) -> List[Any]:
    # A nested list in topic position 0 means "any of these"
    return [[e.topic for e in events]]


def scan_events(
    rpc: RpcClient,
    contract_address: str,
    events: Sequence[Event],
    from_block: BlockTag = "earliest",
    to_block: BlockTag = "latest",
    step: int = 50_000,
) -> Iterator[ParsedEvent]:
    """Yield every log of `events` emitted by `contract_address`, decoded.

    All event types share a single filter. Each call queries the chain again.
    """
    by_topic = {e.topic: e for e in events}
    logs = fetch_logs(rpc, contract_address, topics_for(events), from_block, to_block, step=step)
    for lg in logs:
        topic0 = ((lg.get("topics") or [""])[0] or "").lower()
        ev = by_topic.get(topic0)
        if ev is None:
            continue
        yield ev.decode(lg)


def dedupe_by_tx(primary: Iterable[ParsedEvent], secondary: Iterable[ParsedEvent]) -> List[ParsedEvent]:
    """Drop secondary events whose transaction already produced a primary event."""
    seen = {e.transaction_hash for e in primary}
    return [e for e in secondary if e.transaction_hash not in seen]


def unique_addresses(events: Iterable[ParsedEvent], arg: str, into: Optional[List[str]] = None) -> List[str]:
    out = into if into is not None else []
    seen = set(out)
    for ev in events:
        address = str(ev.args[arg]).lower()
        if address not in seen:
            seen.add(address)
            out.append(address)
    return out


# ---------- Historical deployments ----------
@dataclass
class KnownDeployment:
    address: str
    from_block: int
    deposit_event: str
    deposit_target: str
    migrate_event: str
    migrate_target: str
    abi: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "KnownDeployment":
        return cls(**{**d, "address": d["address"].lower()})

    @property
    def events(self) -> Dict[str, Event]:
        return events_from_abi(self.abi)


def verify_deployment_set(expected: Sequence[str], registered: Sequence[str]) -> None:
    exp = [a.lower() for a in expected]
    reg = [a.lower() for a in registered]
    log.info("Expecting %d deployments: %s", len(exp), ", ".join(exp))
    log.info("Found %d registered deployments: %s", len(reg), ", ".join(reg))
    if exp != reg:
        raise UnexpectedDeploymentSet(exp, reg)


def collect_candidates(
    rpc: RpcClient,
    deployments: Sequence[KnownDeployment],
    to_block: BlockTag = "latest",
    step: int = 50_000,
) -> List[str]:
    """Addresses that deposited or migrated escrow through any of `deployments`."""
    addresses: List[str] = []
    for dep in deployments:
        events = dep.events
        deposit, migrate = events[dep.deposit_event], events[dep.migrate_event]
        log.info(
            "Looking for %s and %s events in %s from block %s to %s",
            deposit.name, migrate.name, dep.address, dep.from_block, to_block,
        )
        parsed = list(scan_events(rpc, dep.address, [deposit, migrate], dep.from_block, to_block, step=step))

        deposits = [e for e in parsed if e.name == deposit.name]
        # a deposit that also exports vesting entries emits both events in one tx
        migrations = dedupe_by_tx(deposits, [e for e in parsed if e.name == migrate.name])
        log.info("  found %d %s events, %d distinct %s events", len(deposits), deposit.name, len(migrations), migrate.name)

        unique_addresses(deposits, dep.deposit_target, into=addresses)
        unique_addresses(migrations, dep.migrate_target, into=addresses)

    log.info("Found %d unique addresses", len(addresses))
    return addresses


def scan_versions(
    rpc: RpcClient,
    addresses: Sequence[str],
    event: Event,
    from_block: BlockTag = "earliest",
    to_block: BlockTag = "latest",
    step: int = 50_000,
) -> List[ParsedEvent]:
    """The same event across every historical address of one logical contract."""
    out: List[ParsedEvent] = []
    for i, address in enumerate(addresses):
        found = list(scan_events(rpc, address, [event], from_block, to_block, step=step))
        log.info("  version %d at %s: %d %s events", i, address, len(found), event.name)
        out.extend(found)
    return out
