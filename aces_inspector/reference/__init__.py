"""
Reference data (VCdb, PCdb, Qdb) access.
"""

from aces_inspector.reference.base import BaseVehicleInfo, ReferenceDomain, ReferenceLookup
from aces_inspector.reference.memory import InMemoryReference

__all__ = ["BaseVehicleInfo", "InMemoryReference", "ReferenceDomain", "ReferenceLookup"]
