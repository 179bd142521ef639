"""Lists the accounts that got the SNX airdrop but never got WETH."""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from synthetix_scripts import cli
from synthetix_scripts.config import Settings
from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.executor import SENT_FLAG
from synthetix_scripts.ledger.store import Ledger, load_ledger, new_ledger, save_ledger

log = logging.getLogger(__name__)


def missed_accounts(snx: Ledger, weth: Ledger) -> List[str]:
    dropped = {a for a, record in weth.accounts.items() if record.get(SENT_FLAG)}
    return [a for a in snx.accounts if a not in dropped]


def compare(snx_path: Path, weth_path: Path, output_path: Path) -> Ledger:
    for path in (snx_path, weth_path):
        if not path.exists():
            raise InvalidInput(f"Unable to find data file at {path}")
    snx = load_ledger(snx_path)
    weth = load_ledger(weth_path)

    missed = missed_accounts(snx, weth)
    log.info("> Found %d accounts that got the first SNX airdrop, but didn't get the WETH airdrop", len(missed))

    out = new_ledger({"missed": len(missed)})
    for address in missed:
        out.accounts[address] = {"balances": dict(snx.accounts[address].get("balances") or {})}
    save_ledger(out, output_path)
    return out


def _main(args, settings: Settings) -> None:
    cli.require(args.weth_data_file, "Please specify a weth input data file")
    cli.require(args.snx_data_file, "Please specify an snx input data file")
    cli.require(args.output_data_file, "Please specify an output data file")
    compare(Path(args.snx_data_file), Path(args.weth_data_file), Path(args.output_data_file))


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Compares addresses who got the SNX airdrop with the addresses that got the WETH airdrop")
    p.add_argument("--weth-data-file", help="The ledger written by l2_weth_airdrop")
    p.add_argument("--snx-data-file", help="The json containing the snx airdrop targets")
    p.add_argument("--output-data-file", help="The json file where all output will be stored")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
