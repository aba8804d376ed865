"""
Configuration Loader (``agrifund_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into typed ``agrifund_config.schema``
dataclass instances: engine settings and the culture catalog.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on the kernel
or the services package.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* Amounts are parsed to ``Decimal`` from their YAML text, never through
  float.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from agrifund_config.schema import (
    CatalogDefinition,
    CostReferenceDef,
    CultureDef,
    DatabaseSettings,
    EngineSettings,
    MilestoneTemplateDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """
    Parse a Decimal from YAML.

    Floats are converted through their ``str`` form so ``0.1`` stays
    ``Decimal("0.1")``.

    Raises:
        ValueError: if ``value`` is not numeric or is negative.
    """
    if isinstance(value, bool):
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: expected a number, got {value!r}") from exc
    if amount < 0:
        raise ValueError(f"{field_name}: must be >= 0, got {amount}")
    return amount


def parse_cost_reference(data: dict[str, Any]) -> CostReferenceDef:
    """Parse a CostReferenceDef from a dict."""
    return CostReferenceDef(
        expense_type=data["expense_type"],
        amount_per_ha=parse_decimal(data["amount_per_ha"], "amount_per_ha"),
        unit=data.get("unit"),
    )


def parse_milestone(data: dict[str, Any]) -> MilestoneTemplateDef:
    """
    Parse a MilestoneTemplateDef from a dict.

    Raises:
        KeyError: if ``name`` or ``offset_days`` is missing.
        ValueError: if ``offset_days`` is negative or not an integer.
    """
    offset = data["offset_days"]
    if isinstance(offset, bool) or not isinstance(offset, int):
        raise ValueError(f"offset_days must be an integer, got {offset!r}")
    if offset < 0:
        raise ValueError(f"offset_days must be >= 0, got {offset}")
    return MilestoneTemplateDef(
        name=data["name"],
        offset_days=offset,
        action=data.get("action", ""),
        cost_references=tuple(
            parse_cost_reference(c) for c in data.get("cost_references", [])
        ),
    )


def parse_culture(data: dict[str, Any]) -> CultureDef:
    """
    Parse a CultureDef from a dict.

    Raises:
        KeyError: if a required economic field is missing.
        ValueError: on duplicate milestone names within the culture.
    """
    milestones = tuple(parse_milestone(m) for m in data.get("milestones", []))
    names = [m.name for m in milestones]
    if len(names) != len(set(names)):
        raise ValueError(f"Culture {data['code']}: duplicate milestone names")
    return CultureDef(
        code=data["code"],
        name=data["name"],
        cost_per_ha=parse_decimal(data["cost_per_ha"], "cost_per_ha"),
        yield_per_ha=parse_decimal(data["yield_per_ha"], "yield_per_ha"),
        price_per_ton=parse_decimal(data["price_per_ton"], "price_per_ton"),
        technical_sheet_ref=data.get("technical_sheet_ref"),
        milestones=milestones,
    )


def parse_catalog(data: dict[str, Any]) -> CatalogDefinition:
    """
    Parse a CatalogDefinition from a dict.

    Raises:
        ValueError: on duplicate culture codes.
    """
    cultures = tuple(parse_culture(c) for c in data.get("cultures", []))
    codes = [c.code for c in cultures]
    if len(codes) != len(set(codes)):
        raise ValueError("Catalog contains duplicate culture codes")
    return CatalogDefinition(
        version=int(data.get("version", 1)),
        cultures=cultures,
        checksum=compute_checksum(data),
    )


def parse_settings(data: dict[str, Any], base_dir: Path | None = None) -> EngineSettings:
    """
    Parse EngineSettings from a dict.

    A relative ``catalog_path`` is resolved against ``base_dir``.

    Raises:
        KeyError: if ``database.url`` is missing.
    """
    db = data["database"]
    catalog_path = data.get("catalog_path")
    if catalog_path is not None:
        catalog_path = Path(catalog_path)
        if not catalog_path.is_absolute() and base_dir is not None:
            catalog_path = base_dir / catalog_path
    logging_section = data.get("logging", {})
    notifications = data.get("notifications", {})
    return EngineSettings(
        database=DatabaseSettings(
            url=db["url"],
            echo=bool(db.get("echo", False)),
            pool_size=int(db.get("pool_size", 5)),
            max_overflow=int(db.get("max_overflow", 10)),
            pool_timeout=int(db.get("pool_timeout", 30)),
        ),
        log_level=str(logging_section.get("level", "INFO")).upper(),
        notification_sink=notifications.get("sink", "logging"),
        catalog_path=catalog_path,
        checksum=compute_checksum(data),
    )


def load_catalog(path: Path | str) -> CatalogDefinition:
    """Load and parse a culture catalog YAML file."""
    return parse_catalog(load_yaml_file(Path(path)))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute a deterministic SHA-256 checksum of a configuration dict.

    Keys are sorted and non-JSON values stringified so the same YAML always
    hashes the same.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
