"""Lists every synth with its SystemStatus suspension."""

import logging
import sys
from typing import List, Optional, Sequence, Tuple

from synthetix_scripts import cli
from synthetix_scripts.commands.status import bytes32_to_text, load_contracts
from synthetix_scripts.config import Settings, ensure_network, resolve_provider_url
from synthetix_scripts.deployments import deployment_path_for
from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.on_chain.abi import Contract
from synthetix_scripts.on_chain.rpc import RpcClient

log = logging.getLogger(__name__)


def synth_suspensions(issuer: Contract, system_status: Contract) -> List[Tuple[str, str, bool, int]]:
    """(currency, key, suspended, reason) for each available synth."""
    out = []
    for key in issuer.call("availableCurrencyKeys"):
        suspended, reason = system_status.call("synthSuspension", key)
        currency = bytes32_to_text(key)
        if suspended:
            log.warning("%s %s - Suspended: True (%s)", currency, key[:10], reason)
        else:
            log.info("%s %s - Suspended: False", currency, key[:10])
        out.append((currency, key, bool(suspended), reason))
    return out


def _main(args, settings: Settings) -> None:
    network = ensure_network(args.network)
    provider_url = resolve_provider_url(network, args.provider_url, settings, use_default=args.use_ovm)
    path = deployment_path_for(args.deployment_path, settings.deployments_root, network, use_ovm=args.use_ovm)
    if path is None:
        raise InvalidInput("Please specify --deployment-path (or SYNTHETIX_DEPLOYMENTS)")

    cli.review("Info", {"Network": network, "Deployment": path, "Optimism": args.use_ovm, "Provider": provider_url})
    contracts = load_contracts(RpcClient(provider_url), path, ["Issuer", "SystemStatus"], args.use_ovm)
    synth_suspensions(contracts["Issuer"], contracts["SystemStatus"])


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = cli.parser("Query the suspension status of every synth")
    cli.add_provider_args(p, network_default="mainnet")
    p.add_argument("--deployment-path", help="Specify the path to the deployment data directory")
    p.add_argument("--use-ovm", action="store_true", help="Use an Optimism chain")
    return cli.run(_main, p, argv)


if __name__ == "__main__":
    sys.exit(main())
