"""Basket weights file loading."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from greco_tracker.core.exceptions import ConfigError
from greco_tracker.core.models import Basket

logger = logging.getLogger(__name__)


def load_basket(path: Path | str) -> Basket:
    """Read and validate a basket weights file.

    Expected shape::

        {"version": "1.0", "effectiveDate": "1950-01-01", "description": "...",
         "weights": [{"commodityId": "gold", "weight": 0.5, "rationale": "..."}]}

    Raises:
        ConfigError: The file is missing, is not JSON, or its weights are
            invalid (empty, duplicated, or not summing to 1.0).
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(
            f"Basket weights file not found: {path}",
            context={"field": "basket_file", "value": str(path)},
        )
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        basket = Basket.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(
            f"Invalid basket weights file {path}: {e}",
            context={"field": "basket_file", "value": str(path)},
        ) from e

    logger.debug(
        "Loaded basket %s with %d commodities", basket.version, len(basket.weights)
    )
    return basket
