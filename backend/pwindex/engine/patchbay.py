"""qpwgraph patchbay files: export live links, read connection lists back."""
import logging
from dataclasses import dataclass, field
from xml.etree import ElementTree as ET

from .errors import InvalidFormat
from .spec_parser import ARROW, PORT_SEPARATOR

logger = logging.getLogger(__name__)

PATCHBAY_VERSION = "0.6.1"
DEFAULT_PATCHBAY_NAME = "pw_indexed_export"


@dataclass
class PatchbayItems:
    connections: list[str] = field(default_factory=list)
    skipped: int = 0


def build_patchbay(endpoints: list[tuple[str, str]], name: str = DEFAULT_PATCHBAY_NAME) -> str:
    """Render ``(source, target)`` pairs of ``addr:port`` text as patchbay XML."""
    root = ET.Element("patchbay", {"name": name, "version": PATCHBAY_VERSION})
    items = ET.SubElement(root, "items")
    for source, target in endpoints:
        item = ET.SubElement(items, "item", {
            "node-type": "pipewire",
            "port-type": "pipewire-audio",
        })
        source_node = source.split(PORT_SEPARATOR, 1)[0]
        target_node = target.split(PORT_SEPARATOR, 1)[0]
        ET.SubElement(item, "output", {"node": source_node, "port": source})
        ET.SubElement(item, "input", {"node": target_node, "port": target})
    ET.indent(root, space=" ")
    body = ET.tostring(root, encoding="unicode")
    return f'<?xml version="1.0"?>\n<!DOCTYPE patchbay>\n{body}\n'


def _port_name(node: str, port: str) -> str:
    # Port attributes carry "node:port"; older files may hold the bare port name.
    prefix = f"{node}{PORT_SEPARATOR}"
    if port.startswith(prefix):
        return port[len(prefix):]
    if PORT_SEPARATOR in port:
        return port.split(PORT_SEPARATOR, 1)[1]
    return port


def read_patchbay(xml_text: str) -> PatchbayItems:
    """Extract canonical connection text from every complete ``<item>``."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise InvalidFormat(f"Patchbay file is not valid XML: {e}") from e

    result = PatchbayItems()
    for item in root.iter("item"):
        output = item.find("output")
        input_ = item.find("input")
        if output is None or input_ is None:
            result.skipped += 1
            continue
        out_node, out_port = output.get("node"), output.get("port")
        in_node, in_port = input_.get("node"), input_.get("port")
        if not (out_node and out_port and in_node and in_port):
            result.skipped += 1
            continue
        result.connections.append(
            f"{out_node}{PORT_SEPARATOR}{_port_name(out_node, out_port)}"
            f"{ARROW}"
            f"{in_node}{PORT_SEPARATOR}{_port_name(in_node, in_port)}"
        )

    logger.debug(
        "Read %d connection(s) from patchbay, skipped %d incomplete item(s)",
        len(result.connections), result.skipped,
    )
    return result
