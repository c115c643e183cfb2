# chain_bridge/config.py
import copy
import logging
import os
from typing import Any, Dict, Optional

import yaml

log = logging.getLogger(__name__)

CONFIG_FILE = "chain_bridge.yaml"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

# -------- Defaults --------
_DEFAULT: Dict[str, Any] = {
    "consensus": {
        "rpc_url": "http://127.0.0.1:26657",
        # None = no timeout; commit broadcasts block for whole block intervals
        "timeout_sec": None,
        # Normally learned from the engine at startup; set to pin it.
        "chain_id": "",
    },
    "signing": {"aux_chain_id": 15},
    "governance": {"db_path": "data/governance.db"},
    "network": {"version": 15},
    "logging": {"level": "INFO", "format": LOG_FORMAT},
}


def _optional_float(raw: str) -> Optional[float]:
    raw = raw.strip().lower()
    if raw in ("", "none", "null", "0"):
        return None
    return float(raw)


# -------- ENV overrides --------
_ENV_MAP = {
    ("consensus", "rpc_url"): ("CHAIN_BRIDGE_RPC_URL", str),
    ("consensus", "timeout_sec"): ("CHAIN_BRIDGE_RPC_TIMEOUT", _optional_float),
    ("consensus", "chain_id"): ("CHAIN_BRIDGE_CHAIN_ID", str),
    ("signing", "aux_chain_id"): ("CHAIN_BRIDGE_AUX_CHAIN_ID", int),
    ("governance", "db_path"): ("CHAIN_BRIDGE_GOV_DB", str),
    ("logging", "level"): ("CHAIN_BRIDGE_LOG_LEVEL", str),
}


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in (overlay or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for (section, key), (env_name, cast) in _ENV_MAP.items():
        val = os.getenv(env_name)
        if val is None:
            continue
        try:
            casted = cast(val)
        except ValueError:
            log.warning("ignoring %s=%r: not a valid %s", env_name, val, getattr(cast, "__name__", cast))
            continue
        cfg.setdefault(section, {})
        cfg[section][key] = casted
    return cfg


def load_config(repo_root: Optional[str] = None, path: Optional[str] = None) -> Dict[str, Any]:
    """
    Defaults, deep-merged with chain_bridge.yaml (repo_root or explicit path),
    then typed ENV overrides.
    """
    path = path or os.path.join(repo_root or os.getcwd(), CONFIG_FILE)
    cfg = copy.deepcopy(_DEFAULT)

    if os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            log.warning("config %s unreadable, using defaults: %s", path, e)
            data = {}
        if not isinstance(data, dict):
            log.warning("config %s is not a mapping, using defaults", path)
            data = {}
        cfg = _deep_merge(cfg, data)

    return _apply_env_overrides(cfg)


def configure_logging(cfg: Dict[str, Any]) -> None:
    section = cfg.get("logging", {})
    level = str(section.get("level", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=section.get("format", LOG_FORMAT))


# -------- Small helpers used by the app --------
def get_rpc_url(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("consensus", {}).get("rpc_url") or _DEFAULT["consensus"]["rpc_url"])


def get_rpc_timeout(cfg: Dict[str, Any]) -> Optional[float]:
    raw = cfg.get("consensus", {}).get("timeout_sec")
    return None if raw in (None, "", 0) else float(raw)


def get_pinned_chain_id(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("consensus", {}).get("chain_id") or "")


def get_aux_chain_id(cfg: Dict[str, Any]) -> int:
    return int(cfg.get("signing", {}).get("aux_chain_id", 15))


def get_governance_db(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("governance", {}).get("db_path") or _DEFAULT["governance"]["db_path"])


def get_network_version(cfg: Dict[str, Any]) -> int:
    return int(cfg.get("network", {}).get("version", 15))
