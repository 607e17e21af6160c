"""
Reference lookup facade interface.

The analysis engine only asks for canonical names and validity; it never
sees how VCdb, PCdb or Qdb are stored. Implementations must be safe for
concurrent read-only use from every worker.
"""

from abc import ABC, abstractmethod
from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from enum import Enum

from aces_inspector.schemas.catalog import VCdbAttribute


class ReferenceDomain(str, Enum):
    """
    Fixed lookup domains. VCdb attribute values are looked up with the
    attribute name itself as the domain (e.g. "SubModel").
    """

    BASE_VEHICLE = "BaseVehicle"
    PART_TYPE = "PartType"
    POSITION = "Position"
    PART_TYPE_POSITION = "PartTypePosition"  # code is a (part_type_id, position_id) pair
    QUALIFIER = "Qualifier"


@dataclass(frozen=True)
class BaseVehicleInfo:
    make: str
    model: str
    year: str


class ReferenceLookup(ABC):
    """Read-only capability interface over VCdb, PCdb and Qdb."""

    @abstractmethod
    def name_of(self, domain: str, code: Hashable) -> str:
        """Canonical display name for a code. Unknown codes render as the raw code."""

    @abstractmethod
    def is_valid(self, domain: str, code: Hashable) -> bool:
        """Whether the code exists in the domain."""

    @abstractmethod
    def is_valid_combination(self, base_vehicle_id: int, attributes: Iterable[VCdbAttribute]) -> bool:
        """Whether individually valid attribute codes describe a real configuration of the base vehicle."""

    @abstractmethod
    def base_vehicle(self, base_vehicle_id: int) -> BaseVehicleInfo | None:
        """Make/model/year for a base vehicle, or None if it does not exist."""

    @abstractmethod
    def qualifier_type(self, qualifier_id: int) -> str:
        """Qdb category of a qualifier ("" when unknown)."""

    @property
    @abstractmethod
    def versions(self) -> dict[str, str]:
        """Version/date tokens keyed by database name ("VCdb", "PCdb", "Qdb")."""
