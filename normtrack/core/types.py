"""
normtrack: Core Type Definitions

Common type aliases shared across the fetch, parse and merge stages.
Kept separate so that the ingestion and series packages can share them
without importing each other.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, TypeAlias

# Date string (YYYY-MM-DD) -> closing price for a single instrument
PriceMap: TypeAlias = Dict[str, float]

# Instrument name -> parsed price map
PriceMaps: TypeAlias = Mapping[str, PriceMap]

# JSON object as read from / written to the persisted document
JsonDict: TypeAlias = Dict[str, Any]
