"""
Shared building blocks: configuration, text/amount normalization,
domain models and fetch results.
"""
