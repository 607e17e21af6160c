"""
Dictionary-backed reference facade.

Reference databases are loaded once into plain dicts/sets for fast lookups
(far faster than querying the underlying files per application) and are
never mutated afterwards, so concurrent reads need no locking.
"""

import json
import logging
from collections.abc import Hashable, Iterable
from pathlib import Path

from aces_inspector.exceptions import ReferenceDataError
from aces_inspector.reference.base import BaseVehicleInfo, ReferenceDomain, ReferenceLookup
from aces_inspector.schemas.catalog import VCdbAttribute

logger = logging.getLogger(__name__)


class InMemoryReference(ReferenceLookup):
    def __init__(
        self,
        base_vehicles: dict[int, BaseVehicleInfo] | None = None,
        attributes: dict[str, dict[int, str]] | None = None,
        configurations: dict[int, list[dict[str, int]]] | None = None,
        part_types: dict[int, str] | None = None,
        positions: dict[int, str] | None = None,
        part_type_positions: Iterable[tuple[int, int]] = (),
        qualifiers: dict[int, str] | None = None,
        qualifier_types: dict[int, str] | None = None,
        vcdb_version: str = "",
        pcdb_version: str = "",
        qdb_version: str = "",
    ):
        self._base_vehicles = dict(base_vehicles or {})
        self._attributes = {name: dict(values) for name, values in (attributes or {}).items()}
        self._configurations = {bv: [dict(c) for c in configs] for bv, configs in (configurations or {}).items()}
        self._config_attribute_names = {name for configs in self._configurations.values() for c in configs for name in c}
        self._part_types = dict(part_types or {})
        self._positions = dict(positions or {})
        self._part_type_positions = {(int(pt), int(pos)) for pt, pos in part_type_positions}
        self._qualifiers = dict(qualifiers or {})
        self._qualifier_types = dict(qualifier_types or {})
        self._versions = {"VCdb": vcdb_version, "PCdb": pcdb_version, "Qdb": qdb_version}

    # -- facade ---------------------------------------------------------

    def name_of(self, domain: str, code: Hashable) -> str:
        if domain == ReferenceDomain.BASE_VEHICLE:
            info = self._base_vehicles.get(code)
            return f"{info.make} {info.model} {info.year}" if info else str(code)
        if domain == ReferenceDomain.PART_TYPE:
            return self._part_types.get(code, str(code))
        if domain == ReferenceDomain.POSITION:
            return self._positions.get(code, str(code))
        if domain == ReferenceDomain.PART_TYPE_POSITION:
            part_type_id, position_id = code
            return f"{self.name_of(ReferenceDomain.PART_TYPE, part_type_id)} / {self.name_of(ReferenceDomain.POSITION, position_id)}"
        if domain == ReferenceDomain.QUALIFIER:
            return self._qualifiers.get(code, str(code))
        return self._attributes.get(domain, {}).get(code, str(code))

    def is_valid(self, domain: str, code: Hashable) -> bool:
        if domain == ReferenceDomain.BASE_VEHICLE:
            return code in self._base_vehicles
        if domain == ReferenceDomain.PART_TYPE:
            return code in self._part_types
        if domain == ReferenceDomain.POSITION:
            return code in self._positions
        if domain == ReferenceDomain.PART_TYPE_POSITION:
            return tuple(code) in self._part_type_positions
        if domain == ReferenceDomain.QUALIFIER:
            return code in self._qualifiers
        return code in self._attributes.get(domain, {})

    def is_valid_combination(self, base_vehicle_id: int, attributes: Iterable[VCdbAttribute]) -> bool:
        """
        True when some configuration of the base vehicle carries every
        configuration-type attribute given. Attributes outside the
        configuration system (and base vehicles with no recorded
        configurations) are not evidence of a bad combination.
        """
        relevant = [a for a in attributes if a.name in self._config_attribute_names]
        if not relevant:
            return True
        configs = self._configurations.get(base_vehicle_id)
        if not configs:
            return True
        return any(all(config.get(a.name) == a.value for a in relevant) for config in configs)

    def base_vehicle(self, base_vehicle_id: int) -> BaseVehicleInfo | None:
        return self._base_vehicles.get(base_vehicle_id)

    def qualifier_type(self, qualifier_id: int) -> str:
        return self._qualifier_types.get(qualifier_id, "")

    @property
    def versions(self) -> dict[str, str]:
        return dict(self._versions)

    # -- import ---------------------------------------------------------

    @classmethod
    def from_json(cls, vcdb_path: str | Path, pcdb_path: str | Path, qdb_path: str | Path) -> "InMemoryReference":
        """
        Load VCdb, PCdb and Qdb exports from three JSON files.

        VCdb: {"version", "base_vehicles": {id: {make, model, year}},
               "attributes": {name: {id: text}}, "configurations": {id: [{name: id}]}}
        PCdb: {"version", "part_types": {id: name}, "positions": {id: name},
               "part_type_positions": [[part_type_id, position_id], ...]}
        Qdb:  {"version", "qualifiers": {id: {"text", "type"}}}
        """
        vcdb = _read_json(vcdb_path, "VCdb")
        pcdb = _read_json(pcdb_path, "PCdb")
        qdb = _read_json(qdb_path, "Qdb")

        try:
            base_vehicles = {
                int(bv): BaseVehicleInfo(make=str(v["make"]), model=str(v["model"]), year=str(v["year"]))
                for bv, v in vcdb.get("base_vehicles", {}).items()
            }
            attributes = {
                name: {int(code): str(text) for code, text in values.items()}
                for name, values in vcdb.get("attributes", {}).items()
            }
            configurations = {
                int(bv): [{name: int(code) for name, code in c.items()} for c in configs]
                for bv, configs in vcdb.get("configurations", {}).items()
            }
            part_types = {int(k): str(v) for k, v in pcdb.get("part_types", {}).items()}
            positions = {int(k): str(v) for k, v in pcdb.get("positions", {}).items()}
            pairs = [(int(pt), int(pos)) for pt, pos in pcdb.get("part_type_positions", [])]
            qualifiers = {int(k): str(v["text"]) for k, v in qdb.get("qualifiers", {}).items()}
            qualifier_types = {int(k): str(v.get("type", "")) for k, v in qdb.get("qualifiers", {}).items()}
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ReferenceDataError(f"Malformed reference data: {e}") from e

        if not base_vehicles:
            raise ReferenceDataError(f"VCdb import failed: no base vehicles in {vcdb_path}")
        if not part_types:
            raise ReferenceDataError(f"PCdb import failed: no part types in {pcdb_path}")

        reference = cls(
            base_vehicles=base_vehicles,
            attributes=attributes,
            configurations=configurations,
            part_types=part_types,
            positions=positions,
            part_type_positions=pairs,
            qualifiers=qualifiers,
            qualifier_types=qualifier_types,
            vcdb_version=str(vcdb.get("version", "")),
            pcdb_version=str(pcdb.get("version", "")),
            qdb_version=str(qdb.get("version", "")),
        )
        for name, version in reference.versions.items():
            logger.info(f"Successful {name} import (version date: {version})")
        return reference


def _read_json(path: str | Path, label: str) -> dict:
    path = Path(path)
    if not path.exists():
        raise ReferenceDataError(f"{label} file ({path}) does not exist")
    logger.info(f"Importing {label}: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ReferenceDataError(f"{label} import failed: {e}") from e
    if not isinstance(data, dict):
        raise ReferenceDataError(f"{label} import failed: expected a JSON object in {path}")
    return data
