"""
Catalog import.

A catalog is a JSON document with a header and an application list:

    {
      "header": {"title": "...", "vcdb_version": "2024-01-26",
                 "pcdb_version": "...", "qdb_version": "..."},
      "apps": [{"id": 1, "base_vehicle_id": 5911, "part_type_id": 1684,
                "position_id": 1, "quantity": 1, "part": "BP1234",
                "vcdb_attributes": [{"name": "SubModel", "value": 20}], ...}]
    }
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from aces_inspector.exceptions import CatalogError
from aces_inspector.schemas.catalog import App, ApplicationSet
from aces_inspector.services.staging import apps_fingerprint, file_fingerprint
from aces_inspector.utils.inventory import build_inventory

logger = logging.getLogger(__name__)


def build_application_set(apps: list[App], fingerprint: str | None = None, **header) -> ApplicationSet:
    """Wrap parsed apps with their inventory indexes and a content fingerprint."""
    return ApplicationSet(
        apps=list(apps),
        inventory=build_inventory(apps),
        fingerprint=fingerprint or apps_fingerprint(apps),
        **header,
    )


def load_catalog(path: str | Path) -> ApplicationSet:
    """Parse and validate a JSON catalog. Raises CatalogError when it can't be used."""
    path = Path(path)
    if not path.exists():
        raise CatalogError(f"Input file ({path}) does not exist")

    fingerprint = file_fingerprint(path)
    logger.info(f"Importing catalog {path} (fingerprint {fingerprint})")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CatalogError(f"Catalog import failed: {e}") from e
    if not isinstance(data, dict):
        raise CatalogError(f"Catalog import failed: expected a JSON object in {path}")

    header = data.get("header") or {}
    try:
        apps = [App.model_validate(raw) for raw in data.get("apps") or []]
    except ValidationError as e:
        raise CatalogError(f"Catalog import failed: {e.error_count()} invalid application field(s)\n{e}") from e
    if not apps:
        raise CatalogError(f"Catalog import failed: no applications in {path}")

    app_set = build_application_set(
        apps,
        fingerprint=fingerprint,
        title=str(header.get("title", "")),
        source_path=path,
        vcdb_version=str(header.get("vcdb_version", "")),
        pcdb_version=str(header.get("pcdb_version", "")),
        qdb_version=str(header.get("qdb_version", "")),
    )
    logger.info(f"Imported {len(apps)} apps, {len(app_set.inventory.parts_app_counts)} distinct parts")
    return app_set
