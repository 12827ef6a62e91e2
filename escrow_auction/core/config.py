"""
Auction configuration parameters.

Defines timing rules, bid increment policy, and commission economics.
Values can be overridden through ``AUCTION_*`` environment variables,
optionally loaded from a ``.env`` file.
"""

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from dotenv import load_dotenv

ENV_PREFIX = "AUCTION_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class AuctionConfig:
    """Auction-wide configuration parameters"""

    # Pricing
    starting_price: int = 1_000_000  # Minimum accepted first bid
    min_increment_pct: int = 5  # Required raise over the standing bid

    # Timing (seconds)
    duration: int = 86_400  # Active phase length before extensions
    extension_window: int = 600  # Bids closer than this to the end extend it
    extension: int = 600  # Amount added to end_time per late bid

    # Economics
    commission_pct: int = 2  # Deducted from every settled balance

    # Test/operator override for skipping the time check
    allow_force_finalize: bool = False

    def validate(self) -> None:
        """Raise ValueError if any parameter is out of range."""
        if self.starting_price <= 0:
            raise ValueError(f"starting_price must be positive, got {self.starting_price}")
        if not 0 <= self.min_increment_pct <= 100:
            raise ValueError(f"min_increment_pct must be in [0, 100], got {self.min_increment_pct}")
        if not 0 <= self.commission_pct <= 100:
            raise ValueError(f"commission_pct must be in [0, 100], got {self.commission_pct}")
        if self.duration <= 0:
            raise ValueError(f"duration must be positive, got {self.duration}")
        if self.extension_window < 0 or self.extension < 0:
            raise ValueError("extension_window and extension must be non-negative")

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def config_from_mapping(env: Mapping[str, str]) -> AuctionConfig:
    """
    Build a config from ``AUCTION_*`` keys in a mapping.

    Keys are the upper-cased field names with the prefix, e.g.
    ``AUCTION_COMMISSION_PCT``. Missing keys keep their defaults.
    """
    overrides = {}
    for f in fields(AuctionConfig):
        key = ENV_PREFIX + f.name.upper()
        if key not in env:
            continue
        raw = env[key]
        if f.type in (bool, "bool"):
            overrides[f.name] = _parse_bool(key, raw)
        else:
            try:
                overrides[f.name] = int(raw.replace("_", ""))
            except ValueError:
                raise ValueError(f"{key} must be an integer, got {raw!r}") from None

    config = AuctionConfig(**overrides)
    config.validate()
    return config


def load_config(env_file: Optional[str] = None) -> AuctionConfig:
    """
    Load configuration from the environment.

    Args:
        env_file: Optional path to a .env file loaded before reading
            the environment. Variables already set take precedence.

    Returns:
        AuctionConfig instance
    """
    if env_file:
        load_dotenv(env_file, override=False)

    return config_from_mapping(os.environ)
