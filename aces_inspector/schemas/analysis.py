"""
Analysis state: diagnostic records, per-worker chunks and run results.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, ConfigDict

from aces_inspector.schemas.catalog import App


class DiagnosticCategory(str, Enum):
    """Diagnostic categories. Values double as staged fragment file stems."""

    PARTTYPE_POSITION = "parttypePositionErrors"
    INVALID_VCDB_CODE = "invalidVCdbCodes"
    INVALID_CONFIGURATION = "configurationErrors"
    INVALID_BASE_VEHICLE = "invalidBasevehicles"
    QDB_ERROR = "qdbErrors"
    QUESTIONABLE_NOTE = "questionableNotes"
    QTY_OUTLIER = "qtyOutliers"
    PARTTYPE_DISAGREEMENT = "parttypeDisagreements"
    ASSET_PROBLEM = "assetProblems"
    FITMENT_LOGIC = "fitmentLogicProblems"


# Produced by the individual record validator, one fragment per flat chunk
INDIVIDUAL_CATEGORIES = (
    DiagnosticCategory.PARTTYPE_POSITION,
    DiagnosticCategory.QDB_ERROR,
    DiagnosticCategory.QUESTIONABLE_NOTE,
    DiagnosticCategory.INVALID_BASE_VEHICLE,
    DiagnosticCategory.INVALID_VCDB_CODE,
    DiagnosticCategory.INVALID_CONFIGURATION,
)

# Produced by the single outlier pass, one fragment per run
OUTLIER_CATEGORIES = (
    DiagnosticCategory.QTY_OUTLIER,
    DiagnosticCategory.PARTTYPE_DISAGREEMENT,
    DiagnosticCategory.ASSET_PROBLEM,
)


class Diagnostic(BaseModel):
    """
    One finding, carrying enough context to render without further lookups.
    """

    model_config = ConfigDict(frozen=True)

    category: DiagnosticCategory
    error_type: str = ""
    app_id: int | None = None
    reference: str = ""  # offending code, asset name, or part-type list
    base_vehicle_id: int | None = None
    make: str = ""
    model: str = ""
    year: str = ""
    part_type: str = ""
    position: str = ""
    quantity: int | None = None
    part: str = ""
    fitment: str = ""
    vcdb_attributes: str = ""
    qdb_qualifiers: str = ""
    notes: str = ""

    ROW_FIELDS: ClassVar[tuple[str, ...]] = (
        "error_type",
        "app_id",
        "reference",
        "base_vehicle_id",
        "make",
        "model",
        "year",
        "part_type",
        "position",
        "quantity",
        "part",
        "fitment",
        "vcdb_attributes",
        "qdb_qualifiers",
        "notes",
    )

    def to_row(self) -> list[str]:
        """Flatten to tab-safe strings for fragment staging."""
        row = []
        for name in self.ROW_FIELDS:
            value = getattr(self, name)
            text = "" if value is None else str(value)
            row.append(text.replace("\t", " ").replace("\r", " ").replace("\n", " "))
        return row

    @classmethod
    def from_row(cls, category: DiagnosticCategory, row: list[str]) -> "Diagnostic":
        values = dict(zip(cls.ROW_FIELDS, row))
        for name in ("app_id", "base_vehicle_id", "quantity"):
            values[name] = int(values[name]) if values.get(name) else None
        return cls(category=category, **values)


@dataclass
class AnalysisChunk:
    """
    A bounded slice of applications owned by exactly one worker.

    Only the owning worker writes to it; everything else reads it after the
    completion barrier.
    """

    id: int
    apps: list[App] = field(default_factory=list)
    fragments: dict[DiagnosticCategory, Path] = field(default_factory=dict)
    counts: Counter = field(default_factory=Counter)
    diagnostics: dict[DiagnosticCategory, list[Diagnostic]] = field(default_factory=dict)
    staged: list[DiagnosticCategory] = field(default_factory=list)  # written out and released from memory

    # fitment-group chunks only
    problem_apps: list[App] = field(default_factory=list)
    lowest_badness_permutation: list[str] = field(default_factory=list)
    lowest_badness: int = 0

    def record(self, diagnostic: Diagnostic, weight: int = 1) -> None:
        self.counts[diagnostic.category] += weight
        self.diagnostics.setdefault(diagnostic.category, []).append(diagnostic)

    def count(self, category: DiagnosticCategory) -> int:
        return self.counts.get(category, 0)


@dataclass
class ChunkGroup:
    """A batch of fitment-group chunks processed sequentially by one task."""

    id: int
    chunks: list[AnalysisChunk] = field(default_factory=list)


@dataclass(frozen=True)
class PermutationRecord:
    """An ordering of fitment elements and the badness of the tree it builds."""

    elements: tuple[str, ...]
    badness: int


@dataclass
class ProblemGroup:
    """A fitment group whose best tree still has a non-zero badness."""

    number: int
    apps: list[App]
    permutation: list[str]
    badness: int


@dataclass
class AnalysisResults:
    """Totals and diagnostics exposed to the reporting layer."""

    counts: dict[DiagnosticCategory, int] = field(default_factory=dict)
    diagnostics: dict[DiagnosticCategory, list[Diagnostic]] = field(default_factory=dict)
    fragments: dict[DiagnosticCategory, list[Path]] = field(default_factory=dict)  # staged detail, chunk order
    problem_groups: dict[int, ProblemGroup] = field(default_factory=dict)
    fingerprint: str = ""
    versions: dict[str, str] = field(default_factory=dict)
    elapsed_seconds: float = 0.0

    def count(self, category: DiagnosticCategory) -> int:
        return self.counts.get(category, 0)

    @property
    def error_count(self) -> int:
        """Hard errors: the categories that fail an assessment."""
        return sum(
            self.count(c)
            for c in (
                DiagnosticCategory.PARTTYPE_POSITION,
                DiagnosticCategory.INVALID_VCDB_CODE,
                DiagnosticCategory.INVALID_CONFIGURATION,
                DiagnosticCategory.INVALID_BASE_VEHICLE,
                DiagnosticCategory.QDB_ERROR,
                DiagnosticCategory.FITMENT_LOGIC,
            )
        )
