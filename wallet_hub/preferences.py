"""Persisted user preferences (JSON file)."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from .chains.registry import get_chain

logger = logging.getLogger(__name__)

PREFERRED_NETWORK_KEY = "preferredNetwork"


class PreferenceStore:
    """Small key-value store; holds the one-shot preferred network."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, self.path)

    def get_preferred_network(self) -> int | None:
        value = self._load().get(PREFERRED_NETWORK_KEY)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid preferred network %r", value)
            return None

    def set_preferred_network(self, chain_id: int) -> None:
        get_chain(chain_id)
        data = self._load()
        data[PREFERRED_NETWORK_KEY] = chain_id
        self._save(data)

    def clear_preferred_network(self) -> None:
        data = self._load()
        if data.pop(PREFERRED_NETWORK_KEY, None) is not None:
            self._save(data)
