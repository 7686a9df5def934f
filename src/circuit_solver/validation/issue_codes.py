# src/circuit_solver/validation/issue_codes.py
import logging
from enum import Enum

logger = logging.getLogger(__name__)


class TopologyIssueCode(Enum):
    """
    Registry of topology validation issue codes and their message templates.
    Each enum member's value is a tuple: (code_str, message_template_str).
    """

    # --- Naming ---
    DUPLICATE_NAME = ("DUPLICATE_NAME", "Element name(s) used more than once: {names}.")

    # --- Reference point ---
    MISSING_OR_MULTIPLE_GROUND = ("MISSING_OR_MULTIPLE_GROUND", "Exactly one ground reference is required: {reason}.")

    # --- Graph structure ---
    DISCONNECTED = ("DISCONNECTED", "The circuit splits into {count} disconnected parts: {groups}.")
    OPEN_CIRCUIT = ("OPEN_CIRCUIT", "Node(s) {nodes} have no path to ground through resistors, wires or voltage sources.")
    SHORT_CIRCUIT = ("SHORT_CIRCUIT", "Element(s) {names} form a loop of zero-impedance elements (wires and voltage sources).")
    SELF_LOOP = ("SELF_LOOP", "Element(s) {names} connect a node to itself.")

    # --- Element values ---
    EMPTY_CIRCUIT = ("EMPTY_CIRCUIT", "The circuit contains no elements besides ground markers.")
    INVALID_VALUE = ("INVALID_VALUE", "Element(s) have invalid values: {problems}.")
    NO_SOURCES = ("NO_SOURCES", "The circuit has no independent sources; every voltage and current will be zero.")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def template(self) -> str:
        return self.value[1]

    def format_message(self, **kwargs) -> str:
        """Formats the message template with provided keyword arguments."""
        try:
            return self.template.format(**kwargs)
        except KeyError as e:
            logger.error(f"Missing key {e} for message template of {self.code}: '{self.template}'. Provided args: {kwargs}")
            return f"Error formatting message for {self.code}: Missing key {e}."
