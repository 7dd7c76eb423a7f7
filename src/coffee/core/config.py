"""Configuration: env, data directory layout, lightning paths."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from coffee.core.utils import read_json, write_json

DEFAULT_NETWORK = "bitcoin"
NETWORKS = ("bitcoin", "testnet", "signet", "regtest", "liquid")

_TRUE = ("1", "true", "yes", "on")


@dataclass
class Config:
    data_dir: Path = field(default_factory=lambda: Path.home() / ".coffee")
    network: str = DEFAULT_NETWORK
    cln_root: Path | None = None  # recorded by `coffee setup`
    cln_conf: Path | None = None  # explicit override of the lightning config file
    skip_verify: bool = False
    verbose: bool = False
    fetch_timeout: int = 120
    build_timeout: int = 600

    @property
    def network_dir(self) -> Path:
        return self.data_dir / self.network

    @property
    def repositories_dir(self) -> Path:
        return self.network_dir / "repositories"

    @property
    def plugins_dir(self) -> Path:
        return self.network_dir / "plugins"

    @property
    def remotes_path(self) -> Path:
        return self.network_dir / "remotes.json"

    @property
    def index_path(self) -> Path:
        return self.network_dir / "plugins.json"

    @property
    def settings_path(self) -> Path:
        return self.network_dir / "settings.json"

    @property
    def cln_config_path(self) -> Path | None:
        """The lightning config file coffee manages, if known."""
        if self.cln_conf is not None:
            return self.cln_conf
        if self.cln_root is not None:
            return self.cln_root / self.network / "config"
        return None

    @property
    def rpc_socket(self) -> Path | None:
        if self.cln_root is None:
            return None
        return self.cln_root / self.network / "lightning-rpc"

    def record_cln_root(self, cln_root: Path) -> None:
        data = read_json(self.settings_path)
        data["cln_root"] = str(cln_root)
        write_json(self.settings_path, data)
        self.cln_root = cln_root

    def forget_cln_root(self) -> None:
        data = read_json(self.settings_path)
        data.pop("cln_root", None)
        write_json(self.settings_path, data)
        self.cln_root = None


def _apply_settings(config: Config, path: Path) -> None:
    """Apply a single settings.json file to config."""
    data = read_json(path)
    if "network" in data:
        config.network = data["network"]
    if "cln_root" in data and data["cln_root"]:
        config.cln_root = Path(data["cln_root"]).expanduser()
    if "cln_conf" in data and data["cln_conf"]:
        config.cln_conf = Path(data["cln_conf"]).expanduser()
    if "skip_verify" in data:
        config.skip_verify = bool(data["skip_verify"])
    if isinstance(data.get("fetch_timeout"), int):
        config.fetch_timeout = data["fetch_timeout"]
    if isinstance(data.get("build_timeout"), int):
        config.build_timeout = data["build_timeout"]


def load_config(
    data_dir: str | None = None,
    network: str | None = None,
    conf: str | None = None,
    skip_verify: bool = False,
    verbose: bool = False,
) -> Config:
    """Load config with priority: CLI args > env > .env > settings.json > defaults."""
    load_dotenv()

    config = Config()
    config.verbose = verbose

    if data_dir:
        config.data_dir = Path(data_dir).expanduser()
    elif env_dir := os.getenv("COFFEE_DATA_DIR"):
        config.data_dir = Path(env_dir).expanduser()

    _apply_settings(config, config.data_dir / "settings.json")

    if network:
        config.network = network
    elif env_network := os.getenv("COFFEE_NETWORK"):
        config.network = env_network

    # per-network settings are only known once the network is
    _apply_settings(config, config.settings_path)

    if env_root := os.getenv("COFFEE_CLN_ROOT"):
        config.cln_root = Path(env_root).expanduser()
    if env_conf := os.getenv("COFFEE_CLN_CONF"):
        config.cln_conf = Path(env_conf).expanduser()
    if os.getenv("COFFEE_SKIP_VERIFY", "").lower() in _TRUE:
        config.skip_verify = True

    if conf:
        config.cln_conf = Path(conf).expanduser()
    if skip_verify:
        config.skip_verify = True

    return config
