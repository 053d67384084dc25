"""
Routing package: response models, envelope normalization and the
source-key registry.
"""
