"""Shared plumbing for the command modules: flags, signer setup, review block, exit codes."""

import argparse
import logging
import sys
import traceback
from typing import Any, Callable, Dict, Optional, Sequence

from eth_account import Account
from eth_utils import is_address

from synthetix_scripts.config import Settings, load_settings, setup_logging
from synthetix_scripts.errors import Cancelled, InvalidInput
from synthetix_scripts.ledger import amounts
from synthetix_scripts.on_chain.rpc import RpcClient
from synthetix_scripts.on_chain.tx import TxSender
from synthetix_scripts.variables import DEFAULT_RECEIPT_TIMEOUT_S

log = logging.getLogger(__name__)

RULE = "=" * 80


def prompt_confirm(message: str = "Continue?") -> bool:
    answer = input(f"{message} [y/N] ").strip().lower()
    return answer in ("y", "yes")


def parser(description: str) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description=description)
    p.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    p.add_argument("--log-file", default=None, help="Also append logs to this file")
    return p


def add_provider_args(p: argparse.ArgumentParser, network_default: Optional[str] = "mainnet") -> None:
    p.add_argument("--network", default=network_default, type=str.lower, help="Network to use")
    p.add_argument("--provider-url", default=None, help="The http provider to use for communicating with the blockchain")


def add_write_args(p: argparse.ArgumentParser, gas_price_default: str = "0") -> None:
    p.add_argument("--gas-price", default=gas_price_default, help="Gas price in gwei to use on all transfers")
    p.add_argument("--gas-limit", default=None, type=int, help="Gas limit per transaction")
    p.add_argument("--yes", action="store_true", help="Skip all confirmations")
    p.add_argument("--dry-run", action="store_true", help="Do not send any actual transactions")
    p.add_argument(
        "--receipt-timeout",
        default=DEFAULT_RECEIPT_TIMEOUT_S,
        type=float,
        help="Seconds to wait for each transaction to be mined",
    )


def require(value: Any, message: str) -> Any:
    if value is None or value == "":
        raise InvalidInput(message)
    return value


def require_address(value: Optional[str], what: str) -> str:
    require(value, f"Please specify the {what}")
    if not is_address(value):
        raise InvalidInput(f"Invalid {what}: {value}")
    return value.lower()


def parse_gwei(value: str) -> int:
    return amounts.parse_units(value, 9)


def make_sender(rpc: RpcClient, settings: Settings, *, required: bool = True) -> Optional[TxSender]:
    if not settings.private_key:
        if required:
            raise InvalidInput("PRIVATE_KEY is not set")
        return None
    account = Account.from_key(settings.private_key)
    return TxSender(rpc, account)


def review(title: str, items: Dict[str, Any]) -> None:
    log.info("")
    log.info(title)
    log.info(RULE)
    for key, value in items.items():
        log.info("* %s: %s", key, value)
    log.info(RULE)


def run(
    main: Callable[[argparse.Namespace, Settings], Any],
    p: argparse.ArgumentParser,
    argv: Optional[Sequence[str]] = None,
) -> int:
    """Parse flags, configure logging and run `main`. 0 on success, 1 on any error."""
    args = p.parse_args(argv)
    settings = load_settings()
    setup_logging(args.log_level or settings.log_level, args.log_file)
    try:
        main(args, settings)
    except Cancelled:
        log.info("User cancelled")
        return 0
    except Exception as e:
        log.error("%s: %s", type(e).__name__, e)
        traceback.print_exc(file=sys.stderr)
        return 1
    return 0
