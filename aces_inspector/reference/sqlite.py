"""
Import VCdb, PCdb and Qdb from SQLite databases into an InMemoryReference.

Expected tables (a flattened version of the published schemas):

VCdb: BaseVehicle(BaseVehicleID, MakeName, ModelName, YearID)
      Attribute(AttributeName, AttributeID, AttributeValue)
      VehicleConfig(BaseVehicleID, ConfigID, AttributeName, AttributeID)
PCdb: PartType(PartTypeID, PartTypeName)
      Position(PositionID, Position)
      CodeMaster(PartTypeID, PositionID)
Qdb:  Qualifier(QualifierID, QualifierText, QualifierType)

Each database may carry a Version(VersionDate) table.
"""

import logging
from pathlib import Path

import aiosqlite

from aces_inspector.exceptions import ReferenceDataError
from aces_inspector.reference.base import BaseVehicleInfo
from aces_inspector.reference.memory import InMemoryReference

logger = logging.getLogger(__name__)


async def _fetch(db: aiosqlite.Connection, sql: str) -> list[aiosqlite.Row]:
    cursor = await db.execute(sql)
    rows = await cursor.fetchall()
    await cursor.close()
    return rows


async def _version(db: aiosqlite.Connection) -> str:
    try:
        rows = await _fetch(db, "SELECT VersionDate FROM Version")
    except aiosqlite.OperationalError:
        return ""
    return str(rows[0]["VersionDate"]) if rows else ""


async def _connect(path: str | Path, label: str) -> aiosqlite.Connection:
    path = Path(path)
    if not path.exists():
        raise ReferenceDataError(f"{label} database file ({path}) does not exist")
    logger.info(f"Importing {label}: {path}")
    db = await aiosqlite.connect(str(path))
    db.row_factory = aiosqlite.Row
    return db


async def _load_vcdb(path: str | Path) -> dict:
    db = await _connect(path, "VCdb")
    try:
        base_vehicles = {
            int(r["BaseVehicleID"]): BaseVehicleInfo(make=r["MakeName"], model=r["ModelName"], year=str(r["YearID"]))
            for r in await _fetch(db, "SELECT BaseVehicleID, MakeName, ModelName, YearID FROM BaseVehicle")
        }
        attributes: dict[str, dict[int, str]] = {}
        for r in await _fetch(db, "SELECT AttributeName, AttributeID, AttributeValue FROM Attribute"):
            attributes.setdefault(r["AttributeName"], {})[int(r["AttributeID"])] = str(r["AttributeValue"])

        configs_by_id: dict[tuple[int, int], dict[str, int]] = {}
        for r in await _fetch(
            db, "SELECT BaseVehicleID, ConfigID, AttributeName, AttributeID FROM VehicleConfig ORDER BY ConfigID"
        ):
            key = (int(r["BaseVehicleID"]), int(r["ConfigID"]))
            configs_by_id.setdefault(key, {})[r["AttributeName"]] = int(r["AttributeID"])
        configurations: dict[int, list[dict[str, int]]] = {}
        for (base_vehicle_id, _config_id), config in configs_by_id.items():
            configurations.setdefault(base_vehicle_id, []).append(config)

        return {
            "base_vehicles": base_vehicles,
            "attributes": attributes,
            "configurations": configurations,
            "vcdb_version": await _version(db),
        }
    except (aiosqlite.Error, KeyError, IndexError, TypeError, ValueError) as e:
        raise ReferenceDataError(f"VCdb import failed: {e}") from e
    finally:
        await db.close()


async def _load_pcdb(path: str | Path) -> dict:
    db = await _connect(path, "PCdb")
    try:
        part_types = {
            int(r["PartTypeID"]): r["PartTypeName"]
            for r in await _fetch(db, "SELECT PartTypeID, PartTypeName FROM PartType")
        }
        positions = {int(r["PositionID"]): r["Position"] for r in await _fetch(db, "SELECT PositionID, Position FROM Position")}
        pairs = [
            (int(r["PartTypeID"]), int(r["PositionID"]))
            for r in await _fetch(db, "SELECT PartTypeID, PositionID FROM CodeMaster")
        ]
        return {
            "part_types": part_types,
            "positions": positions,
            "part_type_positions": pairs,
            "pcdb_version": await _version(db),
        }
    except (aiosqlite.Error, KeyError, IndexError, TypeError, ValueError) as e:
        raise ReferenceDataError(f"PCdb import failed: {e}") from e
    finally:
        await db.close()


async def _load_qdb(path: str | Path) -> dict:
    db = await _connect(path, "Qdb")
    try:
        rows = await _fetch(db, "SELECT QualifierID, QualifierText, QualifierType FROM Qualifier")
        return {
            "qualifiers": {int(r["QualifierID"]): str(r["QualifierText"]) for r in rows},
            "qualifier_types": {int(r["QualifierID"]): str(r["QualifierType"] or "") for r in rows},
            "qdb_version": await _version(db),
        }
    except (aiosqlite.Error, KeyError, IndexError, TypeError, ValueError) as e:
        raise ReferenceDataError(f"Qdb import failed: {e}") from e
    finally:
        await db.close()


async def load_reference_sqlite(
    vcdb_path: str | Path, pcdb_path: str | Path, qdb_path: str | Path
) -> InMemoryReference:
    """Import all three databases. Raises ReferenceDataError on any failure."""
    vcdb = await _load_vcdb(vcdb_path)
    if not vcdb["base_vehicles"]:
        raise ReferenceDataError(f"VCdb import failed: no base vehicles in {vcdb_path}")
    pcdb = await _load_pcdb(pcdb_path)
    if not pcdb["part_types"]:
        raise ReferenceDataError(f"PCdb import failed: no part types in {pcdb_path}")
    qdb = await _load_qdb(qdb_path)

    reference = InMemoryReference(**vcdb, **pcdb, **qdb)
    for name, version in reference.versions.items():
        logger.info(f"Successful {name} import (version date: {version})")
    return reference
