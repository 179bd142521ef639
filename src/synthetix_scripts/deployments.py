"""
Reads Synthetix deployment data laid out as in the synthetix package:

    <root>/<network>[-ovm]/deployment.json   {"targets": {name: {"address", "source"}}, "sources": {source: {"abi"}}}
    <root>/<network>[-ovm]/versions.json     {tag: {"release":..., "contracts": {name: {"address": ...}}}}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from synthetix_scripts.errors import InvalidInput

log = logging.getLogger(__name__)

DEPLOYMENT_FILENAME = "deployment.json"
VERSIONS_FILENAME = "versions.json"


def get_path_to_network(root: Union[str, Path], network: str, use_ovm: bool = False) -> Path:
    return Path(root) / (f"{network}-ovm" if use_ovm else network)


def ensure_deployment_path(path: Union[str, Path]) -> Path:
    path = Path(path)
    if not (path / DEPLOYMENT_FILENAME).exists() and not (path / VERSIONS_FILENAME).exists():
        raise InvalidInput(
            f"Invalid deployment path {path}. Please provide a folder with a compatible {DEPLOYMENT_FILENAME}"
        )
    return path


def _read(path: Path) -> Any:
    if not path.exists():
        raise InvalidInput(f"missing deployment file {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def get_target(deployment_path: Union[str, Path], contract: str) -> str:
    targets = _read(Path(deployment_path) / DEPLOYMENT_FILENAME).get("targets", {})
    target = targets.get(contract)
    if not target or not target.get("address"):
        raise InvalidInput(f"contract {contract} not found in {deployment_path}")
    return target["address"].lower()


def get_versions(deployment_path: Union[str, Path], contract: str) -> List[str]:
    """Every address `contract` has been deployed at, oldest release first."""
    versions: Dict[str, Any] = _read(Path(deployment_path) / VERSIONS_FILENAME)
    out: List[str] = []
    for tag, version in versions.items():
        entry = (version.get("contracts") or {}).get(contract)
        if not entry or not entry.get("address"):
            continue
        address = entry["address"].lower()
        log.debug("  %s %s (%s) -> %s", contract, tag, version.get("release"), address)
        if address not in out:
            out.append(address)
    return out


def resolve_target(
    deployment_path: Optional[Union[str, Path]],
    contract: str,
    fallback: Optional[Dict[str, str]] = None,
) -> str:
    if deployment_path:
        return get_target(deployment_path, contract)
    if fallback and contract in fallback:
        return fallback[contract]
    raise InvalidInput(f"no deployment data for {contract}; pass --deployment-path or set SYNTHETIX_DEPLOYMENTS")


def deployment_path_for(
    explicit: Optional[Union[str, Path]],
    root: Optional[Union[str, Path]],
    network: str,
    use_ovm: bool = False,
) -> Optional[Path]:
    """--deployment-path wins; otherwise the network folder under SYNTHETIX_DEPLOYMENTS, if set."""
    if explicit:
        return ensure_deployment_path(explicit)
    if root:
        log.info("Loading default deployment for network %s%s", network, " (ovm)" if use_ovm else "")
        return ensure_deployment_path(get_path_to_network(root, network, use_ovm))
    return None


def get_source_abi(deployment_path: Union[str, Path], contract: str, source: Optional[str] = None) -> List[Dict[str, Any]]:
    """ABI of `contract` from deployment.json, looked up through its target's source name."""
    data = _read(Path(deployment_path) / DEPLOYMENT_FILENAME)
    target = (data.get("targets") or {}).get(contract) or {}
    name = source or target.get("source") or contract
    entry = (data.get("sources") or {}).get(name)
    if not entry or "abi" not in entry:
        raise InvalidInput(f"no abi for {name} in {deployment_path}")
    return entry["abi"]
