from __future__ import annotations
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from .fines import FLAT_POLICY, NAMED_POLICIES, FinePolicy

load_dotenv()


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else None


@dataclass
class Settings:
    # Storage
    data_dir: str = field(default_factory=lambda: os.getenv("MANALIB_DATA_DIR", "data"))
    seed_on_start: bool = field(default_factory=lambda: _env_bool("MANALIB_SEED_ON_START"))

    # Loans and reservations
    loan_period_days: int = field(
        default_factory=lambda: int(os.getenv("MANALIB_LOAN_PERIOD_DAYS", "14"))
    )
    extension_days: int = field(
        default_factory=lambda: int(os.getenv("MANALIB_EXTENSION_DAYS", "14"))
    )
    reservation_fee: float = field(
        default_factory=lambda: float(os.getenv("MANALIB_RESERVATION_FEE", "1.0"))
    )

    # Fines: a named policy ("flat" or "capped") wins over the raw values
    fine_policy_name: Optional[str] = field(
        default_factory=lambda: os.getenv("MANALIB_FINE_POLICY") or None
    )
    fine_rate_per_day: Optional[float] = field(
        default_factory=lambda: _env_optional_float("MANALIB_FINE_RATE_PER_DAY")
    )
    max_fine: Optional[float] = field(
        default_factory=lambda: _env_optional_float("MANALIB_MAX_FINE")
    )

    log_level: str = field(default_factory=lambda: os.getenv("MANALIB_LOG_LEVEL", "INFO"))

    @classmethod
    def from_env(cls) -> "Settings":
        return cls()

    @property
    def fine_policy_explicit(self) -> bool:
        return self.fine_policy_name is not None or self.fine_rate_per_day is not None

    def fine_policy(self) -> FinePolicy:
        if self.fine_policy_name is not None:
            try:
                return NAMED_POLICIES[self.fine_policy_name.lower()]
            except KeyError:
                raise ValueError(
                    f"unknown fine policy {self.fine_policy_name!r}; "
                    f"expected one of {sorted(NAMED_POLICIES)}"
                ) from None
        if self.fine_rate_per_day is not None:
            return FinePolicy(rate_per_day=self.fine_rate_per_day, max_fine=self.max_fine)
        return FinePolicy(rate_per_day=FLAT_POLICY.rate_per_day, max_fine=self.max_fine)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        force=True,
    )


settings = Settings()
