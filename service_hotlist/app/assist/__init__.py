"""
LLM-backed helpers: per-item analysis and batch title translation.
"""
