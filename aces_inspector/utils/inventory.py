"""
Inventory indexes derived from the application list.
"""

from aces_inspector.schemas.catalog import App, InventoryIndexes


def build_inventory(apps: list[App]) -> InventoryIndexes:
    """Compute per-part counts/part types/positions, distinct sets, and note frequencies."""
    inventory = InventoryIndexes()
    for app in apps:
        inventory.parts_app_counts[app.part] = inventory.parts_app_counts.get(app.part, 0) + 1
        inventory.parts_part_types.setdefault(app.part, set()).add(app.part_type_id)
        inventory.parts_positions.setdefault(app.part, set()).add(app.position_id)
        inventory.distinct_part_types.add(app.part_type_id)
        if app.mfr_label:
            inventory.distinct_mfr_labels.add(app.mfr_label)
        for note in app.notes:
            inventory.note_counts[note] = inventory.note_counts.get(note, 0) + 1
    return inventory
