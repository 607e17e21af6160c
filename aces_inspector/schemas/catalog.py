"""
Pydantic schemas for the parsed catalog: application records and the
inventory indexes derived from them.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class VCdbAttribute(BaseModel):
    """A VCdb-coded vehicle attribute, e.g. SubModel=20."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: int


class QdbQualifier(BaseModel):
    """A Qdb-coded general qualifier with its parameter values."""

    model_config = ConfigDict(frozen=True)

    qualifier_id: int
    params: tuple[str, ...] = ()


class App(BaseModel):
    """One catalog application line. Immutable once parsed."""

    model_config = ConfigDict(frozen=True)

    id: int
    base_vehicle_id: int
    part_type_id: int
    position_id: int
    quantity: int
    part: str
    mfr_label: str = ""
    asset: str = ""
    asset_item_order: int | None = None
    brand: str = ""
    notes: tuple[str, ...] = ()
    vcdb_attributes: tuple[VCdbAttribute, ...] = ()
    qdb_qualifiers: tuple[QdbQualifier, ...] = ()


class InventoryIndexes(BaseModel):
    """Read-only views over the record set, computed once after import."""

    parts_app_counts: dict[str, int] = Field(default_factory=dict)
    parts_part_types: dict[str, set[int]] = Field(default_factory=dict)
    parts_positions: dict[str, set[int]] = Field(default_factory=dict)
    distinct_part_types: set[int] = Field(default_factory=set)
    distinct_mfr_labels: set[str] = Field(default_factory=set)
    note_counts: dict[str, int] = Field(default_factory=dict)


class ApplicationSet(BaseModel):
    """The parsed catalog handed to the analysis engine."""

    apps: list[App]
    inventory: InventoryIndexes
    fingerprint: str
    title: str = ""
    source_path: Path | None = None
    vcdb_version: str = ""
    pcdb_version: str = ""
    qdb_version: str = ""
