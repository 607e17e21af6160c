"""
Analysis services: partitioning, validators, fitment tree search, aggregation.
"""
