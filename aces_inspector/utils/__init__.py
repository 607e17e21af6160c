"""
Helpers shared by the validators and the reporting layer.
"""
