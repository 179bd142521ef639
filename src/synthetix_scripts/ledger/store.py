"""
Ledger persistence.

A ledger is a JSON document of the shape

    {"totals": {name: "<int>"}, "accounts": {"0xabc...": {...}}}

rewritten in full (2-space indent, sorted keys) after every mutation. Writes go
to a temp file in the same directory which is then renamed over the target, so
a crash leaves either the previous or the next version on disk, never a mix.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from synthetix_scripts.errors import CorruptLedger
from synthetix_scripts.ledger import amounts

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class Ledger:
    totals: Dict[str, Any] = field(default_factory=dict)
    accounts: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def account(self, address: str) -> Optional[Dict[str, Any]]:
        return self.accounts.get(address.lower())

    def to_json(self) -> Dict[str, Any]:
        return {"totals": self.totals, "accounts": self.accounts}


def new_ledger(defaults: Optional[Mapping[str, Any]] = None) -> Ledger:
    return Ledger(totals={k: str(v) for k, v in (defaults or {}).items()}, accounts={})


def load_ledger(path: PathLike, defaults: Optional[Mapping[str, Any]] = None) -> Ledger:
    path = Path(path)
    if not path.exists():
        return new_ledger(defaults)
    try:
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as e:
        raise CorruptLedger(str(path), f"invalid JSON ({e})") from e
    except UnicodeDecodeError as e:
        raise CorruptLedger(str(path), "not UTF-8") from e

    if not isinstance(payload, dict):
        raise CorruptLedger(str(path), "top level is not an object")
    totals = payload.get("totals", {})
    accounts = payload.get("accounts", {})
    if not isinstance(totals, dict):
        raise CorruptLedger(str(path), "'totals' is not an object")
    if not isinstance(accounts, dict):
        raise CorruptLedger(str(path), "'accounts' is not an object")
    for address, record in accounts.items():
        if not isinstance(record, dict):
            raise CorruptLedger(str(path), f"record for {address} is not an object")

    ledger = Ledger(totals=dict(totals), accounts={a.lower(): r for a, r in accounts.items()})
    for name, value in (defaults or {}).items():
        ledger.totals.setdefault(name, str(value))
    return ledger


def save_ledger(ledger: Ledger, path: PathLike) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(ledger.to_json(), indent=2, sort_keys=True, ensure_ascii=False) + "\n"
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def upsert_account(ledger: Ledger, address: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
    key = address.lower()
    record = ledger.accounts.setdefault(key, {})
    record.update(patch)
    return record


def add_total(ledger: Ledger, name: str, delta: amounts.Amount) -> str:
    ledger.totals[name] = amounts.add(ledger.totals.get(name, "0"), delta)
    return ledger.totals[name]


class LedgerStore:
    """A ledger bound to its file; every mutation is saved before returning.

    Mutations are serialized with a lock so concurrent readers can report
    results without losing each other's updates.
    """

    def __init__(self, path: PathLike, defaults: Optional[Mapping[str, Any]] = None, *, clear: bool = False):
        self.path = Path(path)
        self.ledger = new_ledger(defaults) if clear else load_ledger(self.path, defaults)
        self._lock = threading.Lock()

    @property
    def totals(self) -> Dict[str, Any]:
        return self.ledger.totals

    @property
    def accounts(self) -> Dict[str, Dict[str, Any]]:
        return self.ledger.accounts

    def get(self, address: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self.ledger.account(address)
            return copy.deepcopy(record) if record is not None else None

    def has(self, address: str) -> bool:
        with self._lock:
            return address.lower() in self.ledger.accounts

    def update(
        self,
        address: str,
        patch: Mapping[str, Any],
        totals: Optional[Mapping[str, amounts.Amount]] = None,
    ) -> Dict[str, Any]:
        with self._lock:
            record = upsert_account(self.ledger, address, patch)
            for name, delta in (totals or {}).items():
                add_total(self.ledger, name, delta)
            save_ledger(self.ledger, self.path)
            return copy.deepcopy(record)

    def update_many(
        self,
        addresses: Sequence[str],
        patch: Mapping[str, Any],
        totals: Optional[Mapping[str, amounts.Amount]] = None,
    ) -> None:
        """Apply the same patch to several accounts in one save."""
        with self._lock:
            for address in addresses:
                upsert_account(self.ledger, address, patch)
            for name, delta in (totals or {}).items():
                add_total(self.ledger, name, delta)
            save_ledger(self.ledger, self.path)

    def increment(self, name: str, delta: amounts.Amount = 1) -> str:
        with self._lock:
            value = add_total(self.ledger, name, delta)
            save_ledger(self.ledger, self.path)
            return value

    def set_total(self, name: str, value: Any) -> None:
        with self._lock:
            self.ledger.totals[name] = str(value)
            save_ledger(self.ledger, self.path)

    def flush(self) -> None:
        with self._lock:
            save_ledger(self.ledger, self.path)
