"""Parser for canonical connection text ``source~N:port->target~M:port``."""
import re
from dataclasses import dataclass

from .errors import InvalidFormat
from .naming import IndexedName, parse_address

ARROW = "->"
PORT_SEPARATOR = ":"

# Some tools JSON-escape '>' when echoing connection strings back.
_ESCAPED_GT = "\\u003e"

_ENDPOINT_RE = re.compile(r"^(?P<node>[^:]+):(?P<port>[^:]+)$")


@dataclass(frozen=True)
class ConnectionSpec:
    source: IndexedName
    source_port: str
    target: IndexedName
    target_port: str

    @property
    def source_node_text(self) -> str:
        return str(self.source)

    @property
    def target_node_text(self) -> str:
        return str(self.target)

    @property
    def source_text(self) -> str:
        return f"{self.source}{PORT_SEPARATOR}{self.source_port}"

    @property
    def target_text(self) -> str:
        return f"{self.target}{PORT_SEPARATOR}{self.target_port}"

    @property
    def canonical(self) -> str:
        return f"{self.source_text}{ARROW}{self.target_text}"

    def __str__(self) -> str:
        return self.canonical


def normalize_arrows(text: str) -> str:
    return text.replace(_ESCAPED_GT, ">")


def _split_arrow(text: str, original: str) -> tuple[str, str]:
    count = text.count(ARROW)
    if count == 0:
        raise InvalidFormat(
            f"Invalid connection format {original!r}. "
            f"Expected: source:port{ARROW}target:port"
        )
    if count > 1:
        raise InvalidFormat(
            f"Ambiguous connection {original!r}: '{ARROW}' appears {count} times"
        )
    source, _, target = text.partition(ARROW)
    return source.strip(), target.strip()


def _split_endpoint(text: str, role: str, original: str) -> tuple[str, str]:
    match = _ENDPOINT_RE.match(text)
    if not match:
        raise InvalidFormat(
            f"Invalid {role} {text!r} in {original!r}. Expected: node{PORT_SEPARATOR}port"
        )
    return match.group("node"), match.group("port")


def parse_connection(text: str) -> ConnectionSpec:
    """Parse connection text into a ConnectionSpec.

    Raises InvalidFormat when the arrow or node:port separators are missing
    or ambiguous, InvalidAddress when a node address has a bad ``~N`` suffix.
    """
    normalized = normalize_arrows(text.strip())
    source_text, target_text = _split_arrow(normalized, text)
    source_node, source_port = _split_endpoint(source_text, "source", text)
    target_node, target_port = _split_endpoint(target_text, "target", text)
    return ConnectionSpec(
        source=parse_address(source_node),
        source_port=source_port,
        target=parse_address(target_node),
        target_port=target_port,
    )


def split_mask(text: str) -> tuple[str, str]:
    """Split ``srcPattern->dstPattern`` at its single literal arrow."""
    normalized = normalize_arrows(text.strip())
    source, target = _split_arrow(normalized, text)
    if not source or not target:
        raise InvalidFormat(
            f"Invalid mask {text!r}. Expected: source_pattern{ARROW}target_pattern"
        )
    return source, target
