"""Central configuration for the catalog checker package."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping

from catalog_checker.domain.enrichment import IMAGE_URL_TEMPLATE
from catalog_checker.infrastructure.storage.settings_store import load_overrides

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
HISTORY_DIR = DATA_DIR / "history"

# ARGB colors used by the storefront for each category group.
CATEGORY_BACKGROUND_COLORS = {
    "snacks_drinks": 4292998654,
    "grocery_kitchen": 4292998633,
    "fruits_vegetables": 4293457385,
    "bakeries_biscuits": 4294962355,
}


@dataclass(frozen=True)
class Settings:
    percentage_range: tuple[int, int] = (5, 20)
    flat_range: tuple[int, int] = (20, 100)
    window_days: tuple[int, int] = (1, 30)
    flat_price_threshold: Decimal = Decimal("200")
    discount_target_count: int = 120
    bestseller_total: int = 20
    bestseller_flat: int = 6
    bestseller_percentage: int = 6
    high_value_threshold: Decimal = Decimal("200")
    price_bucket_bounds: tuple[int, ...] = (50, 100, 200, 500)
    background_colors: Mapping[str, int] = field(default_factory=lambda: dict(CATEGORY_BACKGROUND_COLORS))
    top_n: int = 5
    image_url_template: str = IMAGE_URL_TEMPLATE
    timezone: timezone.__class__ = timezone.utc
    history_dir: Path = HISTORY_DIR

    @property
    def bestseller_undiscounted(self) -> int:
        return self.bestseller_total - self.bestseller_flat - self.bestseller_percentage


def _coerce(name: str, value: Any, default: Any) -> Any:
    if isinstance(default, Decimal):
        return Decimal(str(value))
    if isinstance(default, tuple):
        return tuple(int(v) for v in value)
    if isinstance(default, Path):
        return Path(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, Mapping):
        return {str(k): int(v) for k, v in dict(value).items()}
    if isinstance(default, str):
        if not isinstance(value, str) or "{path}" not in value:
            raise ValueError("expected a string containing {path}")
        return value
    raise ValueError(f"Setting {name} cannot be overridden")


def apply_overrides(base: Settings, overrides: Mapping[str, Any]) -> Settings:
    known = {f.name for f in fields(Settings)} - {"timezone"}
    changes: dict[str, Any] = {}
    for name, value in overrides.items():
        if name not in known:
            logger.warning("Ignoring unknown setting %r", name)
            continue
        try:
            changes[name] = _coerce(name, value, getattr(base, name))
        except (TypeError, ValueError, ArithmeticError) as exc:
            logger.warning("Ignoring invalid value for %s: %s", name, exc)
    return replace(base, **changes)


def load_settings(path: Path | None = None) -> Settings:
    return apply_overrides(Settings(), load_overrides(path))
