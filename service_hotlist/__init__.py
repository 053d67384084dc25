"""
Hotlist aggregation service.
"""
