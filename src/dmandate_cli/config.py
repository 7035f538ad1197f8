"""Configuration management for the dmandate CLI."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

from dmandate_core.config import CLUSTER_URLS, DEFAULT_KEYPAIR_PATH, DEFAULT_PROGRAM_ID

# Default configuration directory
CONFIG_DIR = Path.home() / ".config" / "dmandate"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_CONFIG = {
    "network": "devnet",
    "keypair_path": DEFAULT_KEYPAIR_PATH,
    "program_id": DEFAULT_PROGRAM_ID,
    "current_user": None,
}


def ensure_config_dir() -> Path:
    """Ensure configuration directory exists."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    return CONFIG_DIR


def load_config() -> Dict[str, Any]:
    """Load configuration from file and environment."""
    config = DEFAULT_CONFIG.copy()

    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE) as f:
                config.update(json.load(f))
        except (json.JSONDecodeError, IOError):
            pass

    if os.environ.get("DMANDATE_NETWORK"):
        config["network"] = os.environ["DMANDATE_NETWORK"]
    if os.environ.get("DMANDATE_KEYPAIR_PATH"):
        config["keypair_path"] = os.environ["DMANDATE_KEYPAIR_PATH"]
    if os.environ.get("DMANDATE_PROGRAM_ID"):
        config["program_id"] = os.environ["DMANDATE_PROGRAM_ID"]

    return config


def save_config(config: Dict[str, Any]) -> None:
    """Save configuration to file."""
    ensure_config_dir()

    save_data = {k: v for k, v in config.items() if k in DEFAULT_CONFIG}

    with open(CONFIG_FILE, "w") as f:
        json.dump(save_data, f, indent=2)


def update_config(**values: Any) -> Dict[str, Any]:
    """Merge values into the stored configuration."""
    config = load_config()
    config.update(values)
    save_config(config)
    return config


def reset_config() -> Dict[str, Any]:
    """Restore the default configuration."""
    config = DEFAULT_CONFIG.copy()
    save_config(config)
    return config


def rpc_url_for(config: Dict[str, Any]) -> str:
    """RPC endpoint of the configured network."""
    network = config.get("network", DEFAULT_CONFIG["network"])
    return CLUSTER_URLS.get(network, network)
