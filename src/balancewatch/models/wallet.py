"""Wallet configuration model.

``WalletConfig`` is owned by the external wallet-management layer and pushed
into the engine.  The platform is inferred once from ``source_url`` and is
frozen for the lifetime of the config.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from balancewatch.platforms import Platform, classify_platform

logger = logging.getLogger(__name__)


class WalletConfig(BaseModel):
    """A single tracked wallet / portfolio page.

    Attributes:
        id: Identifier assigned by the wallet-management layer.
        name: Display name; also the key for cache and history entries.
        source_url: The page whose rendered value is the wallet's balance.
        platform: Hosting platform, inferred from ``source_url`` when omitted.
    """

    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str
    source_url: str
    platform: Platform = Platform.GENERIC

    @field_validator("name", "source_url")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="before")
    @classmethod
    def _infer_platform(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("platform") and data.get("source_url"):
            data = {**data, "platform": classify_platform(str(data["source_url"]))}
        return data


def load_wallet_configs(path: str | Path) -> list[WalletConfig]:
    """Load wallet configs from a JSON file.

    The file holds a JSON array of objects with ``id``, ``name`` and
    ``source_url`` (``link`` is accepted as an alias for ``source_url``).
    Invalid entries are skipped with a warning.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file is not a JSON array.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"Expected a JSON array of wallets in {path}")

    configs: list[WalletConfig] = []
    for item in raw:
        if isinstance(item, dict) and "source_url" not in item and "link" in item:
            item = {**item, "source_url": item["link"]}
        try:
            configs.append(WalletConfig.model_validate(item))
        except Exception as e:
            logger.warning("Skipping invalid wallet entry %r: %s", item, e)
    return configs
