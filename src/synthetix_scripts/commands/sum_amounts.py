"""
Adds up one amount field over a JSON file: either an array of records
([{"balanceOf": "123"}, ...]) or a ledger, whose accounts are summed.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from synthetix_scripts import cli
from synthetix_scripts.config import Settings
from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.ledger import amounts

log = logging.getLogger(__name__)

DEFAULT_FIELD = "balanceOf"


def records_of(data: Any) -> Iterable[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("accounts"), dict):
        return data["accounts"].values()
    raise InvalidInput("expected a JSON array of records or a ledger with accounts")


def sum_field(data: Any, field: str = DEFAULT_FIELD) -> int:
    """Missing fields count as 0; values are base-unit integers (strings or numbers)."""
    total = 0
    for record in records_of(data):
        if not isinstance(record, dict):
            raise InvalidInput(f"not a record: {record!r}")
        total += amounts.to_int(record.get(field, 0))
    return total


def _main(args, settings: Settings) -> None:
    path = Path(cli.require(args.data_file, "Please specify a JSON input file"))
    if not path.exists():
        raise InvalidInput(f"No file at {path}")
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    total = sum_field(data, args.field)
    log.info("total %s (%s)", total, amounts.format_units(total))


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Sums an amount field over a JSON file")
    p.add_argument("--data-file", help="JSON array of records, or a ledger")
    p.add_argument("--field", default=DEFAULT_FIELD, help="The field to add up")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
