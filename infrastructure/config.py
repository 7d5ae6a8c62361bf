"""
PAYFLOW CONFIG - Editor Configuration

Loaded once from config/payflow.toml and validated into an EditorConfig.
Every section is optional; a missing or invalid file falls back to the
defaults with a warning.

    [amount]
    max_amount = 10

    [layout]
    node_width = 100
    node_height = 50
    node_sep = 50
    rank_sep = 50

    [spawn]
    x_min = 300
    x_max = 550
    y_min = 0
    y_max = 250

    [notices]
    error_ttl = 1.0
    status_ttl = 2.0

    [history]
    max_depth = 0          # 0 = unbounded

    [storage]
    path = "data/workflow.db"

Usage:
    from infrastructure.config import load_config

    config = load_config()
    config.amount.max_amount        # 10.0
"""
import logging
import tomllib
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Union

import msgspec

from core.layout import LayoutOptions
from core.ontology import DEFAULT_MAX_AMOUNT

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "payflow.toml"


# =============================================================================
# SECTIONS
# =============================================================================

class AmountConfig(msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True):
    max_amount: float = DEFAULT_MAX_AMOUNT


class LayoutConfig(msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True):
    node_width: float = 100.0
    node_height: float = 50.0
    node_sep: float = 50.0
    rank_sep: float = 50.0

    def to_options(self) -> LayoutOptions:
        return LayoutOptions(
            node_width=self.node_width,
            node_height=self.node_height,
            node_sep=self.node_sep,
            rank_sep=self.rank_sep,
        )


class SpawnConfig(msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True):
    """Region where new nodes appear: x in [x_min, x_max), y in [y_min, y_max)."""
    x_min: float = 300.0
    x_max: float = 550.0
    y_min: float = 0.0
    y_max: float = 250.0

    def __post_init__(self):
        if self.x_max <= self.x_min or self.y_max <= self.y_min:
            raise ValueError("spawn region must have x_min < x_max and y_min < y_max")


class NoticeConfig(msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True):
    error_ttl: float = 1.0            # rejected connection, duplicate provider
    status_ttl: float = 2.0           # save / load / import results


class HistoryConfig(msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True):
    max_depth: int = 0


class StorageConfig(msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True):
    path: str = "data/workflow.db"


class EditorConfig(msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True):
    """Complete editor configuration."""
    amount: AmountConfig = msgspec.field(default_factory=AmountConfig)
    layout: LayoutConfig = msgspec.field(default_factory=LayoutConfig)
    spawn: SpawnConfig = msgspec.field(default_factory=SpawnConfig)
    notices: NoticeConfig = msgspec.field(default_factory=NoticeConfig)
    history: HistoryConfig = msgspec.field(default_factory=HistoryConfig)
    storage: StorageConfig = msgspec.field(default_factory=StorageConfig)


# =============================================================================
# LOADING
# =============================================================================

def config_from_dict(data: Dict[str, Any]) -> EditorConfig:
    """
    Validate a parsed TOML document.

    Raises:
        msgspec.ValidationError: If a section or value is invalid
    """
    return msgspec.convert(data, type=EditorConfig)


def load_config(path: Optional[Union[str, Path]] = None) -> EditorConfig:
    """
    Load configuration from payflow.toml.

    Args:
        path: TOML file to read (defaults to config/payflow.toml)

    Returns:
        The validated config, or the defaults if the file is missing or invalid
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    try:
        with open(config_path, "rb") as f:
            config = config_from_dict(tomllib.load(f))
    except (OSError, tomllib.TOMLDecodeError, msgspec.ValidationError, ValueError) as e:
        warnings.warn(f"Failed to load config, using defaults: {e}")
        return EditorConfig()

    logger.debug("Loaded config from %s", config_path)
    return config
