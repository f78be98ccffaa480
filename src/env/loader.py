from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .schema import CoreConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONFIG_ROOT = PROJECT_ROOT / "config"
DEFAULT_CONFIG_NAME = "npc_core.yaml"

# Overrides the config path for every load_core_config() call without args.
CONFIG_ENV_VAR = "NPC_CORE_CONFIG"


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping from `path`."""
    if not path.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at top of {path}, got {type(data)}")
    return data


def _resolve_path(path: Optional[Path]) -> Path:
    if path is not None:
        return Path(path)
    override = os.getenv(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return CONFIG_ROOT / DEFAULT_CONFIG_NAME


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_core_config(path: Optional[Path] = None) -> CoreConfig:
    """
    Main entry point: returns a fully resolved CoreConfig.

    Resolution order: explicit `path`, $NPC_CORE_CONFIG, config/npc_core.yaml.
    Sections missing from the file fall back to dataclass defaults.
    """
    resolved = _resolve_path(path)
    raw = _load_yaml(resolved)
    cfg = CoreConfig.from_dict(raw)
    logger.debug("Loaded core config from %s", resolved)
    return cfg
