"""
Schemas shared across the analysis engine.
"""
