# src/circuit_solver/parser/exceptions.py
"""
Diagnosable exceptions for the parsing and schema validation stage.

`ParsingError` covers documents that cannot be read or that reference things
that do not exist; `SchemaValidationError` covers documents whose structure
does not match the cerberus schema. Both derive from `DiagnosableError`, so the
facade can turn either into a user-facing report.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..errors import DiagnosableError, format_diagnostic_report


def flatten_schema_errors(errors: Dict[Any, Any], prefix: Tuple[str, ...] = ()) -> Iterator[Tuple[str, str]]:
    """Walks a nested cerberus error tree, yielding (dotted field path, message)."""
    for key, entries in sorted(errors.items(), key=lambda item: str(item[0])):
        path = prefix + (str(key),)
        for entry in entries:
            if isinstance(entry, dict):
                yield from flatten_schema_errors(entry, path)
            else:
                yield ".".join(path), str(entry)


@dataclass()
class ParsingError(DiagnosableError):
    """
    Raised when a topology document cannot be loaded or turned into a Container:
    unreadable files, invalid YAML, bad tool or element references, or element
    values that cannot be converted to the element's unit.
    """
    details: str
    source: str = "<mapping>"
    element_name: Optional[str] = None
    tool_index: Optional[int] = None

    def __str__(self):
        return f"Parsing error in {self.source}: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Topology Parsing Error",
            details=self.details,
            suggestion="Check that the document is valid YAML or JSON, that every endpoint names an existing node tool, and that element values carry units matching their kind.",
            context={
                'phase': 'parsing',
                'source': self.source,
                'element': self.element_name,
                'tool': str(self.tool_index) if self.tool_index is not None else None,
            }
        )


@dataclass()
class SchemaValidationError(DiagnosableError):
    """
    Raised when a document is syntactically valid but does not match the
    required structure (missing keys, unknown element kinds, malformed endpoints).
    """
    errors: Dict[str, Any]
    source: str = "<mapping>"
    messages: List[Tuple[str, str]] = field(init=False, repr=False)

    def __post_init__(self):
        self.messages = list(flatten_schema_errors(self.errors))

    def __str__(self):
        error_lines = [f"  - In field '{path}': {message}" for path, message in self.messages]
        return f"Schema validation failed for {self.source}:\n" + "\n".join(error_lines)

    def get_diagnostic_report(self) -> str:
        error_list_str = "\n".join(f"  - Field '{path}': {message}" for path, message in self.messages)
        details = (
            "The structure of the topology document does not conform to the required schema.\n"
            f"See details for {len(self.messages)} issue(s) below:\n\n{error_list_str}"
        )
        return format_diagnostic_report(
            error_type="Topology Schema Validation Error",
            details=details,
            suggestion="Correct the listed fields. Every element needs a name, a kind, a value and two integer endpoints; every tool needs a kind of 'node' or 'mesh'.",
            context={'phase': 'parsing', 'source': self.source}
        )
