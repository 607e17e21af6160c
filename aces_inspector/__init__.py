"""
ACES Inspector: fitment analysis engine for aftermarket parts catalogs.

Validates application records against VCdb/PCdb/Qdb reference data and
searches each fitment group for the most coherent fitment tree.
"""

__version__ = "1.0.0"
