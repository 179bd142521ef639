"""
Prints the state of a Synthetix deployment: rates validity, debt cache,
supply schedule, fee periods, a few settings and every synth rate, plus
per-account issuance and fee data for the accounts given with --addresses.

Everything is read at one block (--block, default the current head).
"""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from synthetix_scripts import cli
from synthetix_scripts.config import Settings, ensure_network, resolve_provider_url
from synthetix_scripts.deployments import deployment_path_for, get_source_abi, get_target
from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.ledger.amounts import format_units
from synthetix_scripts.on_chain.abi import Contract
from synthetix_scripts.on_chain.rpc import BlockTag, RpcClient

log = logging.getLogger(__name__)

# contract -> source name on Optimism, where it differs
OVM_SOURCES = {
    "Synthetix": "MintableSynthetix",
    "DebtCache": "RealtimeDebtCache",
    "SupplySchedule": "FixedSupplySchedule",
}
STATUS_CONTRACTS = [
    "Synthetix",
    "DebtCache",
    "SynthetixState",
    "SupplySchedule",
    "FeePool",
    "FeePoolState",
    "AddressResolver",
    "SystemSettings",
    "ExchangeRates",
    "Issuer",
]

Report = Dict[str, Dict[str, Any]]


def bytes32(text: str) -> str:
    return "0x" + text.encode("utf-8").ljust(32, b"\x00").hex()


def bytes32_to_text(value: str) -> str:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value).rstrip(b"\x00").decode("utf-8", "replace")


def load_contracts(rpc: RpcClient, deployment_path, names: Sequence[str], use_ovm: bool = False) -> Dict[str, Contract]:
    out = {}
    for name in names:
        source = OVM_SOURCES.get(name) if use_ovm else None
        abi = get_source_abi(deployment_path, name, source)
        out[name] = Contract(rpc, get_target(deployment_path, name), abi)
    return out


def _ts(seconds: int) -> str:
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc).isoformat()


def collect_status(
    contracts: Dict[str, Contract],
    addresses: Sequence[str] = (),
    block_tag: BlockTag = "latest",
    use_ovm: bool = False,
    now: Optional[float] = None,
) -> Report:
    now = time.time() if now is None else now
    at = {"block_tag": block_tag}
    report: Report = {}

    synthetix = contracts["Synthetix"]
    report["Synthetix"] = {
        "anySynthOrSNXRateIsInvalid": synthetix.call("anySynthOrSNXRateIsInvalid", **at),
        "totalSupply": format_units(synthetix.call("totalSupply", **at)),
    }

    info = contracts["DebtCache"].call_named("cacheInfo", **at)
    report["DebtCache"] = {"cacheInfo.isInvalid": info["isInvalid"], "cacheInfo.isStale": info["isStale"]}

    report["SynthetixState"] = {
        f"issuanceData({a})": contracts["SynthetixState"].call("issuanceData", a, **at) for a in addresses
    }

    schedule = contracts["SupplySchedule"]
    supply: Dict[str, Any] = {"mintableSupply": format_units(schedule.call("mintableSupply", **at))}
    if use_ovm:
        last_mint = schedule.call("lastMintEvent", **at)
        period = schedule.call("mintPeriodDuration", **at)
        supply.update(
            {
                "inflationStartDate": _ts(schedule.call("inflationStartDate", **at)),
                "lastMintEvent": last_mint,
                "mintPeriodDuration": period,
                "Remaining hours until period ends": round((last_mint + period - now) / 3600, 2),
                "mintBuffer": schedule.call("mintBuffer", **at),
                "periodsSinceLastIssuance": schedule.call("periodsSinceLastIssuance", **at),
            }
        )
    report["SupplySchedule"] = supply

    fee_pool = contracts["FeePool"]
    fees: Dict[str, Any] = {"feePeriodDuration": fee_pool.call("feePeriodDuration", **at)}
    for idx in (0, 1):
        period_info = fee_pool.call_named("recentFeePeriods", idx, **at)
        if "startTime" in period_info:
            period_info["startTime"] = _ts(period_info["startTime"])
        fees[f"feePeriod {idx}"] = period_info
    for a in addresses:
        fees[f"feesByPeriod({a})"] = fee_pool.call("feesByPeriod", a, **at)
        fees[f"getLastFeeWithdrawal({a})"] = fee_pool.call("getLastFeeWithdrawal", a, **at)
        fees[f"effectiveDebtRatioForPeriod({a}, 1)"] = fee_pool.call("effectiveDebtRatioForPeriod", a, 1, **at)
    report["FeePool"] = fees

    report["FeePoolState"] = {
        f"getAccountsDebtEntry({a}, 0)": contracts["FeePoolState"].call("getAccountsDebtEntry", a, 0, **at)
        for a in addresses
    }

    report["AddressResolver"] = {
        "getAddress(RewardsDistribution)": contracts["AddressResolver"].call(
            "getAddress", bytes32("RewardsDistribution"), **at
        ),
    }

    report["SystemSettings"] = {"rateStalePeriod": contracts["SystemSettings"].call("rateStalePeriod", **at)}

    rates = contracts["ExchangeRates"]
    keys: List[str] = list(contracts["Issuer"].call("availableCurrencyKeys", **at)) + [bytes32("SNX")]
    now_min = int(now // 60)
    report["ExchangeRates"] = {}
    for key in keys:
        rate = rates.call("rateForCurrency", key, **at)
        invalid = rates.call("rateIsInvalid", key, **at)
        updated = rates.call("lastRateUpdateTimes", key, **at)
        report["ExchangeRates"][f"{bytes32_to_text(key)} rate"] = (
            f"{format_units(rate)} (Updated {now_min - updated // 60} minutes ago)" + (" INVALID" if invalid else "")
        )
    return report


def log_status(report: Report) -> None:
    for section, items in report.items():
        cli.review(f"=== {section}: ===", items)


def _main(args, settings: Settings) -> None:
    network = ensure_network(args.network)
    provider_url = resolve_provider_url(network, args.provider_url, settings, use_default=args.use_ovm)
    addresses = [cli.require_address(a, "address") for a in (args.addresses or "").split(",") if a.strip()]
    path = deployment_path_for(args.deployment_path, settings.deployments_root, network, use_ovm=args.use_ovm)
    if path is None:
        raise InvalidInput("Please specify --deployment-path (or SYNTHETIX_DEPLOYMENTS)")

    rpc = RpcClient(provider_url)
    block_tag: BlockTag = args.block if args.block is not None else rpc.block_number()
    cli.review(
        "=== Info: ===",
        {"Network": network, "Deployment": path, "Optimism": args.use_ovm, "Block #": block_tag, "Provider": provider_url},
    )
    contracts = load_contracts(rpc, path, STATUS_CONTRACTS, args.use_ovm)
    log_status(collect_status(contracts, addresses, block_tag, args.use_ovm))


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Query state of the system on any network")
    cli.add_provider_args(p, network_default="mainnet")
    p.add_argument("--addresses", help="Comma separated addresses to perform particular checks on")
    p.add_argument("--block", default=None, type=int, help="Block number to check against")
    p.add_argument("--deployment-path", help="Specify the path to the deployment data directory")
    p.add_argument("--use-ovm", action="store_true", help="Use an Optimism chain")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
