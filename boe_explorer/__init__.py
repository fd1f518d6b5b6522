"""
BOE Explorer: ingestion, extraction and cross-referencing of Spanish
public-sector disclosure feeds (BOE, BORME, BDNS).
"""

__version__ = "3.2.0"
