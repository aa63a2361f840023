from __future__ import annotations

import logging
import os
import sys
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

from .models import Placement, WatermarkSpec

# Load environment variables from .env file
load_dotenv()

_HERE = Path(__file__).resolve()
DEFAULT_CONFIG_PATH = _HERE.parent / "config/config.yaml"
CONFIG_PATH = Path(os.environ.get("DOCMARK_CONFIG", DEFAULT_CONFIG_PATH))

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    if not CONFIG_PATH.exists():
        raise FileNotFoundError(f"Default config not found at {CONFIG_PATH}")
    return OmegaConf.load(CONFIG_PATH)


def load_config(overrides: Optional[Dict[str, Any]] = None) -> DictConfig:
    """
    Build the runtime configuration.

    The packaged YAML defaults are copied, locked in struct mode and merged
    with ``overrides``. Environment interpolations (``${oc.env:...}``) are
    resolved so the returned config no longer depends on the process
    environment.

    Raises:
        omegaconf.errors.ConfigKeyError: If an override names an unknown key
    """
    base_container = OmegaConf.to_container(_load_default_config(), resolve=True)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    merged = DictConfig(OmegaConf.merge(base, OmegaConf.create(overrides or {})))
    return merged


def watermark_specs(config: DictConfig) -> Tuple[WatermarkSpec, WatermarkSpec]:
    """Return the (paged, raster) watermark specs described by ``config``."""
    wm = config.watermark
    placement = Placement(wm.placement)
    paged = WatermarkSpec(
        opacity=wm.opacity,
        placement=placement,
        scale=wm.paged.scale,
        spacing=wm.paged.spacing,
    )
    raster = WatermarkSpec(
        opacity=wm.opacity,
        placement=placement,
        scale=wm.raster.scale,
        spacing=wm.raster.spacing,
        logo_width=wm.raster.logo_width,
    )
    return paged, raster


def configure_logging(level: str) -> None:
    root = logging.getLogger("docmark_backend")
    root.setLevel(level.upper())
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
