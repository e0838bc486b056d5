"""
AdaTopo Configuration
=====================

YAML-based configuration with sensible defaults.
Loads from adatopo_config.yaml if present, otherwise uses built-in defaults.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from adatopo.models import TopologyConfiguration

logger = logging.getLogger("adatopo.config")

_DEFAULTS = {
    "topology": {
        "type": "mesh",
        "max_nodes": 100,
        "min_connections": 2,
        "max_connections": 6,
        "rebalance_threshold": 0.2,
        "healing_enabled": True,
        "adaptation_rate": 0.1,
        "target_efficiency": 0.7,
    },
    "metrics": {
        "resilience_trials": 10,
        "failure_fraction": 0.2,
        "eigenvector_iterations": 100,
    },
    "monitoring": {
        "sample_interval_seconds": 30,
        "history_size": 100,
    },
    "logging": {
        "level": "info",
        "change_log_path": None,
    },
}


def load_config(path: str | Path = "adatopo_config.yaml") -> dict:
    """Load configuration from YAML file, merging with defaults.

    Args:
        path: Path to YAML config file. If relative, resolved from CWD.

    Returns:
        Merged config dict with all sections populated.
        The ``topology`` section is validated and normalized (enum values,
        bounds, min <= max); unknown keys in it are dropped with a warning.

    Raises:
        pydantic.ValidationError: the ``topology`` section is invalid.
    """
    config = {k: dict(v) for k, v in _DEFAULTS.items()}
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            user = yaml.safe_load(f) or {}
        for section, values in user.items():
            if section in config and isinstance(values, dict):
                config[section].update(values)
            else:
                config[section] = values

    topology = config["topology"]
    unknown = sorted(set(topology) - set(TopologyConfiguration.model_fields)) if isinstance(topology, dict) else []
    if unknown:
        logger.warning(f"Ignoring unknown topology settings in {config_path}: {unknown}")
    config["topology"] = topology_config_from(config).model_dump(mode="json")
    return config


def topology_config_from(config: dict) -> TopologyConfiguration:
    """Validate the ``topology`` section into a TopologyConfiguration."""
    return TopologyConfiguration.model_validate(config.get("topology", {}))


def configure_logging(level: str = "info") -> None:
    """Apply a basic console handler for host processes (library never calls this)."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
