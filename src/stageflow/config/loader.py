import json
import logging
from pathlib import Path
from typing import Any

DEFAULT_LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"


def load_engine_config(config_path: str | None = None) -> dict[str, Any]:
    """
    Loads the reconciliation engine configuration.
    If no path is provided, looks for engine_config.json in the config directory.
    """
    if config_path is None:
        # Default to the file next to this script
        final_path = Path(__file__).parent / "engine_config.json"
    else:
        final_path = Path(config_path)

    with open(final_path) as f:
        data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"Expected dict from {final_path}, got {type(data)}")
        return data


def configure_logging(config: dict[str, Any]) -> None:
    """Apply the `logging` section of the engine config to the root logger."""
    log_config = config.get("logging", {})
    level_name = str(log_config.get("level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=log_config.get("format", DEFAULT_LOG_FORMAT),
        datefmt="%Y-%m-%d %H:%M:%S",
    )
