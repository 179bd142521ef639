import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.variables import DEFAULT_L2_PROVIDERS, NETWORKS

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


@dataclass(frozen=True)
class Settings:
    provider_url: Optional[str]
    private_key: Optional[str]
    deployments_root: Optional[str]
    log_level: str


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Read the environment once at startup (.env is loaded if present)."""
    load_dotenv(env_file)
    return Settings(
        provider_url=os.getenv("PROVIDER_URL") or None,
        private_key=os.getenv("PRIVATE_KEY") or None,
        deployments_root=os.getenv("SYNTHETIX_DEPLOYMENTS") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def setup_logging(level: Union[str, int] = "INFO", log_file: Optional[str] = None) -> None:
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    kwargs = {"level": level, "format": LOG_FORMAT, "force": True}
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        kwargs.update(filename=log_file, filemode="a")
    logging.basicConfig(**kwargs)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def ensure_network(network: str) -> str:
    network = (network or "").lower()
    if network not in NETWORKS:
        raise InvalidInput(f'Invalid network name of "{network}" supplied. Must be one of {", ".join(NETWORKS)}.')
    return network


def resolve_provider_url(
    network: str,
    provider_url: Optional[str] = None,
    settings: Optional[Settings] = None,
    *,
    use_default: bool = True,
) -> str:
    """--provider-url, else PROVIDER_URL (Infura templates get the network filled in), else a known default."""
    if provider_url:
        return provider_url
    env_url = settings.provider_url if settings else None
    if env_url:
        if "infura" in env_url:
            return env_url.replace("network", network)
        return env_url
    if use_default and network in DEFAULT_L2_PROVIDERS:
        return DEFAULT_L2_PROVIDERS[network]
    raise InvalidInput(f"No known provider for network: {network}. Please specify a custom provider.")
