"""
Fatal error taxonomy.

These stop a run before analysis begins. Anything wrong with an individual
application record is a diagnostic, never an exception.
"""


class InspectorError(RuntimeError):
    """Base class for run-aborting conditions."""


class ReferenceDataError(InspectorError):
    """Reference data (VCdb, PCdb, Qdb) is missing, unreadable or malformed."""


class CatalogError(InspectorError):
    """The input catalog is missing, unreadable or holds no applications."""


class StagingError(InspectorError):
    """The diagnostic staging location cannot be created or written."""
