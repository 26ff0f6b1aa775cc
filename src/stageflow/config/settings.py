"""Typed view over the `reconciliation` section of engine_config.json.

The JSON document stays the source of truth; this module only resolves
defaults once so the computation modules never touch raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stageflow.production.core import Job

SHEETS = "sheets"
CARTONS = "cartons"
BOXES = "boxes"

DEFAULT_UOM_ALIASES: dict[str, tuple[str, ...]] = {
    SHEETS: ("sht", "sheet", "sheets"),
    CARTONS: ("cartoon", "carton", "cartons"),
    BOXES: ("box", "boxes"),
}

DEFAULT_TOLERANCE_TIERS: tuple[tuple[float | None, float], ...] = (
    (1000.0, 0.10),
    (5000.0, 0.075),
    (10000.0, 0.05),
    (None, 0.03),
)


@dataclass
class CompletionBandConfig:
    """Wastage tolerance around the planned quantity of a stage."""

    mode: str = "fixed"  # fixed, tiered
    lower_tolerance: float = 400.0
    upper_tolerance: float = 500.0
    tiers: tuple[tuple[float | None, float], ...] = DEFAULT_TOLERANCE_TIERS
    min_tolerance: float = 50.0
    max_tolerance: float = 2000.0


@dataclass
class ReconciliationSettings:
    completion_band: CompletionBandConfig = field(default_factory=CompletionBandConfig)
    terminal_statuses: frozenset[str] = frozenset({"done", "cancelled"})
    default_uom: str = SHEETS
    dedup_stuck_wip: bool = False
    uom_aliases: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_UOM_ALIASES)
    )

    @classmethod
    def from_config(cls, config: dict[str, Any] | None) -> ReconciliationSettings:
        recon = (config or {}).get("reconciliation", {})
        band = recon.get("completion_band", {})

        tiers = tuple(
            (
                float(t["below"]) if t.get("below") is not None else None,
                float(t["pct"]),
            )
            for t in band.get("tiers", [])
        ) or DEFAULT_TOLERANCE_TIERS

        aliases = {
            domain: tuple(str(s).lower() for s in spellings)
            for domain, spellings in recon.get("uom_aliases", {}).items()
        } or dict(DEFAULT_UOM_ALIASES)

        return cls(
            completion_band=CompletionBandConfig(
                mode=band.get("mode", "fixed"),
                lower_tolerance=float(band.get("lower_tolerance", 400)),
                upper_tolerance=float(band.get("upper_tolerance", 500)),
                tiers=tiers,
                min_tolerance=float(band.get("min_tolerance", 50)),
                max_tolerance=float(band.get("max_tolerance", 2000)),
            ),
            terminal_statuses=frozenset(
                recon.get("terminal_statuses", ["done", "cancelled"])
            ),
            default_uom=recon.get("default_uom", SHEETS),
            dedup_stuck_wip=bool(
                recon.get("bottlenecks", {}).get("dedup_stuck_wip", False)
            ),
            uom_aliases=aliases,
        )

    def is_terminal(self, job: Job) -> bool:
        return job.status.value in self.terminal_statuses

    def uom_domain(self, uom: str | None) -> str | None:
        """Map a UOM spelling ("cartoon", "SHT", ...) to its domain name."""
        if not uom:
            return None
        key = uom.strip().lower()
        for domain, spellings in self.uom_aliases.items():
            if key in spellings:
                return domain
        return None
