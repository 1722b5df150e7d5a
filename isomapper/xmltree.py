"""
Conversion between ISO 20022 XML payloads and the raw document tree.

The raw tree is a plain ``dict``/``list``/``str`` structure shared by the XML
and JSON entry points of every mapper:

* element local names become keys, repeated siblings become lists;
* attributes become ``@_<name>`` keys, namespace declarations ``@_xmlns`` and
  ``@_xmlns:<prefix>``;
* an element holding both attributes and text keeps its text under ``#text``;
* leaf values are always strings, so codes such as ``0001234`` are never
  coerced into numbers.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from lxml import etree

from isomapper.errors import InvalidFormatError, InvalidXmlError

logger = logging.getLogger(__name__)

ATTRIBUTE_PREFIX = "@_"
TEXT_KEY = "#text"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

RawTree = Dict[str, Any]


def _secure_parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
        huge_tree=False,
    )


def _prefixed_name(name: str, nsmap: Dict[Optional[str], str]) -> str:
    """Maps an lxml ``{uri}local`` attribute name back to ``prefix:local``."""
    qname = etree.QName(name)
    if qname.namespace is None:
        return qname.localname
    for prefix, uri in nsmap.items():
        if uri == qname.namespace and prefix:
            return f"{prefix}:{qname.localname}"
    return qname.localname


def _namespace_declarations(element, parent) -> Dict[str, str]:
    inherited = parent.nsmap if parent is not None else {}
    declarations = {}
    for prefix, uri in element.nsmap.items():
        if inherited.get(prefix) == uri:
            continue
        key = "xmlns" if prefix is None else f"xmlns:{prefix}"
        declarations[ATTRIBUTE_PREFIX + key] = uri
    return declarations


def _element_to_node(element, parent=None) -> Union[str, RawTree]:
    attributes: RawTree = _namespace_declarations(element, parent)
    for name, value in element.attrib.items():
        attributes[ATTRIBUTE_PREFIX + _prefixed_name(name, element.nsmap)] = value

    children = [child for child in element if isinstance(child.tag, str)]
    text = (element.text or "").strip()

    if not children:
        if not attributes:
            return text
        if text:
            attributes[TEXT_KEY] = text
        return attributes

    node: RawTree = dict(attributes)
    for child in children:
        key = etree.QName(child).localname
        value = _element_to_node(child, element)
        if key in node:
            existing = node[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[key] = [existing, value]
        else:
            node[key] = value
    return node


def parse(xml: Union[str, bytes]) -> RawTree:
    """
    Parses an XML payload into the raw document tree.

    Args:
        xml: The XML document, as text or bytes.

    Returns:
        dict: A single-key mapping from the root local name to its node.

    Raises:
        InvalidXmlError: If the payload is not well-formed XML.
    """
    if isinstance(xml, str):
        # lxml refuses str input carrying an encoding declaration
        xml = xml.encode("utf-8")
    if not xml or not xml.strip():
        raise InvalidXmlError("Invalid XML format")

    try:
        root = etree.fromstring(xml, parser=_secure_parser())
    except etree.XMLSyntaxError as exc:
        logger.debug("Rejected payload that is not well-formed XML: %s", exc)
        raise InvalidXmlError("Invalid XML format") from exc

    return {etree.QName(root).localname: _element_to_node(root)}


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _split_attributes(node: RawTree):
    namespaces: Dict[Optional[str], str] = {}
    attributes: Dict[str, str] = {}
    for key, value in node.items():
        if not key.startswith(ATTRIBUTE_PREFIX) or value is None:
            continue
        name = key[len(ATTRIBUTE_PREFIX):]
        if name.lower() == "xmlns":
            namespaces[None] = str(value)
        elif name.startswith("xmlns:"):
            namespaces[name[len("xmlns:"):]] = str(value)
        else:
            attributes[name] = _scalar_text(value)
    return namespaces, attributes


def _qualify(name: str, nsmap: Dict[Optional[str], str], default_ns: Optional[str]) -> str:
    if ":" in name:
        prefix, local = name.split(":", 1)
        if prefix in nsmap:
            return f"{{{nsmap[prefix]}}}{local}"
        return local
    if default_ns:
        return f"{{{default_ns}}}{name}"
    return name


def _attribute_name(name: str, nsmap: Dict[Optional[str], str]) -> str:
    if ":" in name:
        prefix, local = name.split(":", 1)
        if prefix in nsmap:
            return f"{{{nsmap[prefix]}}}{local}"
        return local
    return name


def _append(parent, tag: str, value: Any, default_ns: Optional[str]) -> None:
    if value is None:
        return
    if isinstance(value, list):
        for item in value:
            _append(parent, tag, item, default_ns)
        return

    if isinstance(value, dict):
        namespaces, attributes = _split_attributes(value)
        ns = namespaces.get(None, default_ns)
        element = etree.SubElement(
            parent, _qualify(tag, parent.nsmap, ns), nsmap=namespaces or None
        )
        _fill(element, value, attributes, ns)
    else:
        element = etree.SubElement(parent, _qualify(tag, parent.nsmap, default_ns))
        element.text = _scalar_text(value)


def _fill(element, node: RawTree, attributes: Dict[str, str], default_ns: Optional[str]) -> None:
    for name, value in attributes.items():
        element.set(_attribute_name(name, element.nsmap), value)
    for key, value in node.items():
        if key.startswith(ATTRIBUTE_PREFIX):
            continue
        if key == TEXT_KEY:
            if value is not None:
                element.text = _scalar_text(value)
            continue
        _append(element, key, value, default_ns)


def build(tree: RawTree) -> str:
    """
    Compiles a raw document tree back into a pretty-printed XML string.

    ``None`` values are skipped, lists repeat their element and the default
    namespace declared on an element applies to all of its descendants.

    Args:
        tree: A single-key mapping from the root tag name to its node.

    Returns:
        str: The UTF-8 XML document, including the XML declaration.
    """
    if not isinstance(tree, dict) or len(tree) != 1:
        raise InvalidFormatError("A raw document tree must have exactly one root element")

    (root_tag, root_node), = tree.items()
    if not isinstance(root_node, dict):
        root_node = {TEXT_KEY: root_node}

    namespaces, attributes = _split_attributes(root_node)
    default_ns = namespaces.get(None)
    root = etree.Element(
        _qualify(root_tag, namespaces, default_ns), nsmap=namespaces or None
    )
    _fill(root, root_node, attributes, default_ns)

    return etree.tostring(
        root,
        pretty_print=True,
        xml_declaration=True,
        encoding="UTF-8",
    ).decode("utf-8")


def parse_json(payload: Union[str, bytes, RawTree]) -> RawTree:
    """
    Decodes a JSON payload into the raw document tree shape.

    Already-decoded mappings are returned unchanged.
    """
    if isinstance(payload, dict):
        return payload
    try:
        tree = json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise InvalidFormatError("Invalid JSON format") from exc
    if not isinstance(tree, dict):
        raise InvalidFormatError("Invalid JSON format")
    return tree


def prune(value: Any) -> Any:
    """
    Recursively drops ``None`` values, empty mappings and empty lists.

    Returns ``None`` when nothing is left.
    """
    if isinstance(value, dict):
        pruned = {}
        for key, item in value.items():
            item = prune(item)
            if item is not None:
                pruned[key] = item
        return pruned or None
    if isinstance(value, list):
        items = [prune(item) for item in value]
        items = [item for item in items if item is not None]
        return items or None
    return value


def as_list(value: Any) -> List[Any]:
    """Normalizes a one-or-many node into a list without empty members."""
    if value is None:
        return []
    items = value if isinstance(value, list) else [value]
    return [item for item in items if item is not None and item != "" and item != {}]


def dig(node: Any, *path: str) -> Any:
    """
    Safe nested lookup through mappings, e.g. ``dig(doc, "GrpHdr", "MsgId")``.

    Returns ``None`` as soon as a segment is missing or not a mapping.
    """
    current = node
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def text_of(node: Any) -> Optional[str]:
    """
    Returns the text content of a leaf, whether stored bare or under ``#text``.

    Empty strings are reported as ``None``.
    """
    if node is None:
        return None
    if isinstance(node, dict):
        node = node.get(TEXT_KEY)
        if node is None:
            return None
    if isinstance(node, list):
        return text_of(node[0]) if node else None
    if isinstance(node, bool):
        return "true" if node else "false"
    text = str(node).strip()
    return text or None


def attribute_of(node: Any, name: str) -> Optional[str]:
    """Returns the ``@_<name>`` attribute of a node, if any."""
    if not isinstance(node, dict):
        return None
    value = node.get(ATTRIBUTE_PREFIX + name)
    return None if value is None else str(value)
