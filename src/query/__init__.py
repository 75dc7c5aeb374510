"""Query interpretation and unit reconciliation.

The query layer converts a Russian free-text procurement query into a validated `ParsedQuery` and
exposes the unit helpers used to compare a requested quantity against supplier price units.
"""

from src.query.parser import interpret, interpret_async, interpret_with_source
from src.query.schema import CanonicalUnit, ParsedQuery
from src.query.units import convert_quantity, normalize_unit

__all__ = [
    "CanonicalUnit",
    "ParsedQuery",
    "convert_quantity",
    "interpret",
    "interpret_async",
    "interpret_with_source",
    "normalize_unit",
]
