"""
Deployment configuration for tokens and vaults.

Configs are frozen and validated once at construction; a deployed vault
never re-reads them. YAML layout accepted by VaultConfig.from_yaml():

    name: Vault Token
    symbol: VT
    decimals: 6
    offset: 0
    initial_deposit: 1000
    initial_depositor: alice
    overflow_mode: wide
    limits:
      max_deposit: 1000000
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from privault.core.exceptions import ConfigError
from privault.core.models import MAX_OFFSET, U128_MAX, OverflowMode


def _check_amount(name: str, value: Optional[int], allow_none: bool = True) -> None:
    if value is None and allow_none:
        return
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= U128_MAX:
        raise ConfigError(f"{name} must be a uint128 int", {name: value})


def _check_decimals(decimals: int) -> None:
    if isinstance(decimals, bool) or not isinstance(decimals, int) or not 0 <= decimals <= MAX_OFFSET:
        raise ConfigError(
            f"decimals must be an int in 0..{MAX_OFFSET}", {"decimals": decimals}
        )


@dataclass(frozen=True)
class TokenConfig:
    """Token metadata plus an optional genesis mint."""

    name:           str
    symbol:         str
    decimals:       int = 18
    minter:         Optional[str] = None
    initial_supply: int = 0
    initial_holder: Optional[str] = None

    def __post_init__(self):
        if not self.name or not self.symbol:
            raise ConfigError("Token name and symbol are required")
        _check_decimals(self.decimals)
        _check_amount("initial_supply", self.initial_supply, allow_none=False)
        if self.initial_supply and not self.initial_holder:
            raise ConfigError("initial_holder is required when initial_supply > 0")

    @staticmethod
    def from_dict(data: dict) -> "TokenConfig":
        return TokenConfig(
            name=           data["name"],
            symbol=         data["symbol"],
            decimals=       data.get("decimals", 18),
            minter=         data.get("minter"),
            initial_supply= data.get("initial_supply", 0),
            initial_holder= data.get("initial_holder"),
        )


@dataclass(frozen=True)
class VaultLimits:
    """Per-operation caps. None means uncapped."""

    max_deposit:  Optional[int] = None
    max_issue:    Optional[int] = None
    max_withdraw: Optional[int] = None
    max_redeem:   Optional[int] = None

    def __post_init__(self):
        for name, value in asdict(self).items():
            _check_amount(name, value)

    @staticmethod
    def from_dict(data: Optional[dict]) -> "VaultLimits":
        data = data or {}
        unknown = set(data) - {"max_deposit", "max_issue", "max_withdraw", "max_redeem"}
        if unknown:
            raise ConfigError("Unknown limit keys", {"keys": sorted(unknown)})
        return VaultLimits(**data)


@dataclass(frozen=True)
class VaultConfig:
    """
    Immutable vault deployment parameters.

    offset sizes the virtual liquidity (10**offset virtual shares).
    initial_deposit > 0 mints locked shares to lock_address at genesis;
    lock_address None means the vault's own address.
    """

    name:              str = "Vault Share"
    symbol:            str = "VS"
    decimals:          int = 18
    offset:            int = 0
    initial_deposit:   int = 0
    initial_depositor: Optional[str] = None
    lock_address:      Optional[str] = None
    upgrade_authority: Optional[str] = None
    overflow_mode:     OverflowMode = OverflowMode.WIDE
    limits:            VaultLimits = field(default_factory=VaultLimits)

    def __post_init__(self):
        if not self.name or not self.symbol:
            raise ConfigError("Vault name and symbol are required")
        _check_decimals(self.decimals)
        if isinstance(self.offset, bool) or not isinstance(self.offset, int) \
                or not 0 <= self.offset <= MAX_OFFSET:
            raise ConfigError(
                f"offset must be an int in 0..{MAX_OFFSET}", {"offset": self.offset}
            )
        _check_amount("initial_deposit", self.initial_deposit, allow_none=False)
        if self.initial_deposit and not self.initial_depositor:
            raise ConfigError("initial_depositor is required when initial_deposit > 0")
        if not isinstance(self.overflow_mode, OverflowMode):
            raise ConfigError(
                "overflow_mode must be an OverflowMode",
                {"overflow_mode": self.overflow_mode},
            )

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "VaultConfig":
        """Build from a plain dict (YAML / JSON shape)."""
        try:
            overflow_mode = OverflowMode(data.get("overflow_mode", "wide"))
        except ValueError as exc:
            raise ConfigError(
                "Unknown overflow_mode", {"overflow_mode": data.get("overflow_mode")}
            ) from exc

        return VaultConfig(
            name=              data.get("name", "Vault Share"),
            symbol=            data.get("symbol", "VS"),
            decimals=          data.get("decimals", 18),
            offset=            data.get("offset", 0),
            initial_deposit=   data.get("initial_deposit", 0),
            initial_depositor= data.get("initial_depositor"),
            lock_address=      data.get("lock_address"),
            upgrade_authority= data.get("upgrade_authority"),
            overflow_mode=     overflow_mode,
            limits=            VaultLimits.from_dict(data.get("limits")),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "VaultConfig":
        """Load from a YAML file."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to read vault config {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Vault config {path} must be a mapping")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["overflow_mode"] = self.overflow_mode.value
        return data
