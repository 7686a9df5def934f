# src/circuit_solver/parser/parser.py
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple, Union

import cerberus
import pint
import yaml

from ..errors import Diagnosable, TopologyBuildError
from ..simulation.config import ConfigParsingError, SolveConfig, parse_solve_config
from ..topology import Container, ElementKind, ToolKind, TopologyError
from ..units import ureg, to_magnitude
from .exceptions import ParsingError, SchemaValidationError

logger = logging.getLogger(__name__)

RawTopology = Union[Mapping[str, Any], str, Path]

_PINT_PARSE_ERRORS = (
    pint.UndefinedUnitError,
    pint.DimensionalityError,
    pint.DefinitionSyntaxError,
    TypeError,
    ValueError,
    SyntaxError,
)


class EnhancedValidator(cerberus.Validator):
    """Cerberus validator with the extra rules used by topology documents."""
    def __init__(self, *args, **kwargs):
        super(EnhancedValidator, self).__init__(*args, **kwargs)
        self.rules['quantity_string'] = {'type': 'boolean'}
        self.rules['single_key_of'] = {'type': 'list'}

    def _validate_quantity_string(self, constraint: bool, field: str, value: Any):
        """
        Checks that a string value is something pint can parse, e.g. "4.7 kohm".
        The rule's arguments are validated against this schema:
        {'type': 'boolean'}
        """
        if not constraint or not isinstance(value, str):
            return
        try:
            ureg.Quantity(value.strip())
        except _PINT_PARSE_ERRORS as e:
            self._error(field, f"'{value}' is not a number or a quantity with units ({e}).")

    def _validate_single_key_of(self, allowed_keys: List[str], field: str, value: Any):
        """
        Checks that a mapping holds exactly one of the allowed keys.
        The rule's arguments are validated against this schema:
        {'type': 'list'}
        """
        if not isinstance(value, dict):
            return  # Plain integers are handled by the 'type' rule.
        present = [key for key in allowed_keys if key in value]
        if len(present) != 1:
            self._error(field, f"must contain exactly one of {allowed_keys}, got {sorted(value)}.")


@dataclass(frozen=True)
class ParsedTopology:
    """A parsed document: the Container plus the solver settings it asked for."""
    container: Container
    solve_config: SolveConfig


class TopologyParser:
    """
    Turns a topology document (mapping, YAML/JSON text, or a file path) into a
    Container. Structure is checked by cerberus first; references and element
    values are checked while the Container is built.
    """
    _index_rule = {"type": "integer", "min": 0}

    _element_schema = {
        "name": {"type": "string", "required": True, "empty": False},
        "kind": {"type": "string", "required": True, "allowed": [k.wire_name for k in ElementKind]},
        "value": {"type": ["number", "string"], "required": False, "quantity_string": True},
        "endpoints": {"type": "list", "required": True, "minlength": 2, "maxlength": 2, "schema": _index_rule},
    }

    _tool_schema = {
        "kind": {"type": "string", "required": True,
                 "allowed": [k.wire_name for k in ToolKind if not k.is_derived]},
        "members": {"type": "list", "required": False, "schema": _index_rule},
    }

    _schema = {
        "name": {"type": "string", "required": False, "empty": False},
        "elements": {"type": "list", "required": True, "schema": {"type": "dict", "schema": _element_schema}},
        "tools": {"type": "list", "required": True, "schema": {"type": "dict", "schema": _tool_schema}},
        "ground": {
            "type": ["integer", "dict"], "required": False, "nullable": True,
            "single_key_of": ["tool", "element"],
            "schema": {"tool": _index_rule, "element": _index_rule},
        },
        "solver": {
            "type": "dict", "required": False, "nullable": True,
            "schema": {
                "method": {"type": "string", "required": False},
                "singular_tolerance": {"type": "number", "required": False},
            },
        },
    }

    def __init__(self):
        self._validator = EnhancedValidator(self._schema)
        self._validator.allow_unknown = False
        logger.debug("TopologyParser initialized.")

    def parse(self, raw: RawTopology) -> ParsedTopology:
        data, source = self._load(raw)
        if not self._validator.validate(data):
            raise SchemaValidationError(errors=self._validator.errors, source=source)
        document = self._validator.document

        container = Container(name=document.get("name") or (Path(source).stem if isinstance(raw, Path) else "circuit"))
        raw_elements = document["elements"]
        raw_tools = document["tools"]

        self._add_tools(container, raw_tools, raw_elements, source)
        self._add_elements(container, raw_elements, source)
        self._check_node_members(container, raw_tools, source)
        self._set_ground(container, document.get("ground"), source)

        try:
            solve_config = parse_solve_config(document.get("solver"))
        except ConfigParsingError as e:
            raise ParsingError(details=str(e), source=source) from e

        logger.info(f"Parsed topology '{container.name}' from {source}: "
                    f"{len(container.elements)} elements, {len(container.tools)} tools.")
        return ParsedTopology(container=container, solve_config=solve_config)

    def _load(self, raw: RawTopology) -> Tuple[Dict[str, Any], str]:
        if isinstance(raw, Mapping):
            return dict(raw), "<mapping>"

        if isinstance(raw, Path):
            source = str(raw)
            try:
                text = raw.read_text(encoding="utf-8")
            except OSError as e:
                raise ParsingError(details=f"Could not read file: {e}", source=source) from e
        elif isinstance(raw, str):
            source, text = "<string>", raw
        else:
            raise ParsingError(details=f"Unsupported input of type '{type(raw).__name__}'.", source="<unknown>")

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ParsingError(details=f"Invalid YAML/JSON syntax: {e}", source=source) from e
        if not isinstance(data, dict):
            raise ParsingError(details="The document must be a mapping with 'elements' and 'tools'.", source=source)
        return data, source

    def _add_tools(self, container: Container, raw_tools: List[Dict], raw_elements: List[Dict], source: str):
        # Tools come first so that elements can reference nodes; mesh members are
        # therefore checked against the raw element list here.
        for position, raw_tool in enumerate(raw_tools):
            kind = ToolKind.from_wire_name(raw_tool["kind"])
            if kind == ToolKind.NODE:
                container.add_node()
                continue
            members = raw_tool.get("members") or []
            for member in members:
                if member >= len(raw_elements):
                    raise ParsingError(details=f"Mesh tool {position} lists element {member}, which does not exist.",
                                       source=source, tool_index=position)
                if raw_elements[member]["kind"] == ElementKind.GROUND.wire_name:
                    raise ParsingError(details="Tool contains a ground element", source=source, tool_index=position)
            try:
                container.add_tool(kind, members)
            except TopologyError as e:
                raise ParsingError(details=e.details, source=source, tool_index=position) from e

    def _add_elements(self, container: Container, raw_elements: List[Dict], source: str):
        for raw_element in raw_elements:
            name = raw_element["name"]
            kind = ElementKind.from_wire_name(raw_element["kind"])
            raw_value = raw_element.get("value", 0)
            try:
                value = to_magnitude(raw_value, kind.unit)
            except _PINT_PARSE_ERRORS as e:
                raise ParsingError(
                    details=f"Value '{raw_value}' of element '{name}' cannot be read as {kind.unit or 'a plain number'}: {e}",
                    source=source, element_name=name
                ) from e
            try:
                container.add_element(name, kind, value, raw_element["endpoints"])
            except TopologyError as e:
                raise ParsingError(details=e.details, source=source, element_name=name, tool_index=e.tool_index) from e

    def _check_node_members(self, container: Container, raw_tools: List[Dict], source: str):
        for position, raw_tool in enumerate(raw_tools):
            members = raw_tool.get("members")
            if raw_tool["kind"] != ToolKind.NODE.wire_name or not members:
                continue
            actual = container.tool(position).element_members
            if set(members) != set(actual):
                raise ParsingError(
                    details=(f"Node tool {position} lists members {sorted(set(members))}, "
                             f"but the elements connected to it are {sorted(actual)}."),
                    source=source, tool_index=position
                )

    def _set_ground(self, container: Container, raw_ground: Any, source: str):
        if raw_ground is None:
            return
        if isinstance(raw_ground, int):
            container.set_ground(tool=raw_ground)
        elif "tool" in raw_ground:
            container.set_ground(tool=raw_ground["tool"])
        else:
            container.set_ground(element=raw_ground["element"])
        logger.debug(f"Designated ground reference: {container.ground}")


def parse_topology(raw: RawTopology) -> Container:
    """Parses a topology document and returns its Container."""
    return TopologyParser().parse(raw).container


def load_topology(raw: RawTopology) -> ParsedTopology:
    """
    User-facing entry point: parses a document and its solver settings, turning
    any known failure into a `TopologyBuildError` carrying the diagnostic report.
    """
    try:
        return TopologyParser().parse(raw)
    except Exception as e:
        if isinstance(e, Diagnosable):
            diagnostic_report = e.get_diagnostic_report()
            logger.error(f"Topology loading failed:{diagnostic_report}")
            raise TopologyBuildError(diagnostic_report) from e
        logger.error("An unexpected error occurred while loading a topology.", exc_info=True)
        raise
