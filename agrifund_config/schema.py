"""
Configuration schema.

Defines the human-authored, reviewable configuration artifacts: engine
settings and the culture catalog.  YAML files are parsed into these types
by the loader; the bridge writes catalog definitions into the kernel.

Key distinction:
  EngineSettings    = runtime wiring (database, logging, notifications)
  CatalogDefinition = reference data (cultures, milestone templates, costs)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Engine settings
# ---------------------------------------------------------------------------

NOTIFICATION_SINKS = ("logging", "memory")


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to init_engine_from_url()."""

    url: str
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class EngineSettings:
    """Everything needed to stand up a LifecycleEngine."""

    database: DatabaseSettings
    log_level: str = "INFO"
    notification_sink: str = "logging"
    catalog_path: Path | None = None
    checksum: str = ""

    def __post_init__(self) -> None:
        if self.notification_sink not in NOTIFICATION_SINKS:
            raise ValueError(
                f"Unknown notification sink {self.notification_sink!r}; "
                f"expected one of {NOTIFICATION_SINKS}"
            )


# ---------------------------------------------------------------------------
# Culture catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CostReferenceDef:
    """A per-hectare reference expense of a milestone template."""

    expense_type: str
    amount_per_ha: Decimal
    unit: str | None = None


@dataclass(frozen=True)
class MilestoneTemplateDef:
    """A template task, offset in days from production launch."""

    name: str
    offset_days: int
    action: str = ""
    cost_references: tuple[CostReferenceDef, ...] = ()


@dataclass(frozen=True)
class CultureDef:
    """A crop type with reference economics per hectare."""

    code: str
    name: str
    cost_per_ha: Decimal
    yield_per_ha: Decimal
    price_per_ton: Decimal
    technical_sheet_ref: str | None = None
    milestones: tuple[MilestoneTemplateDef, ...] = ()


@dataclass(frozen=True)
class CatalogDefinition:
    """The full culture catalog as authored in YAML."""

    version: int
    cultures: tuple[CultureDef, ...]
    checksum: str = ""

    def culture(self, code: str) -> CultureDef:
        for culture in self.cultures:
            if culture.code == code:
                return culture
        raise KeyError(f"Culture not in catalog: {code}")
