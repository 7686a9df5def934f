# src/circuit_solver/parser/__init__.py
from .parser import (
    EnhancedValidator,
    ParsedTopology,
    TopologyParser,
    parse_topology,
    load_topology,
)
from .exceptions import ParsingError, SchemaValidationError

__all__ = [
    "EnhancedValidator",
    "ParsedTopology",
    "TopologyParser",
    "parse_topology",
    "load_topology",
    "ParsingError",
    "SchemaValidationError",
]
