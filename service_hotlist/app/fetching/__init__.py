"""
Fetch layer: cache read, per-key single-flight and cache write around
upstream producers.
"""
