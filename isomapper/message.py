import logging
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union

from isomapper import xmltree
from isomapper.errors import InvalidFormatError, InvalidXmlError, InvalidXmlNamespaceError
from isomapper.xmltree import ATTRIBUTE_PREFIX, XSI_NAMESPACE, RawTree

logger = logging.getLogger(__name__)

ISO20022_URN_PREFIX = "urn:iso:std:iso:20022:tech:xsd:"


class MessageType(str, Enum):
    """
    Every ISO 20022 message type isomapper can map. Values are the message
    identifier prefixes found in document namespaces.
    """

    CAMT_003 = "camt.003"
    CAMT_004 = "camt.004"
    CAMT_005 = "camt.005"
    CAMT_006 = "camt.006"
    CAMT_053 = "camt.053"
    PAIN_001 = "pain.001"
    PAIN_002 = "pain.002"

    @property
    def label(self) -> str:
        return self.value.upper()

    @property
    def namespace_prefix(self) -> str:
        return f"{ISO20022_URN_PREFIX}{self.value}.001."


def document_namespace(tree: Any) -> Optional[str]:
    """Reads the default namespace declared on the ``Document`` root."""
    document = tree.get("Document") if isinstance(tree, dict) else None
    if not isinstance(document, dict):
        return None
    namespace = document.get(ATTRIBUTE_PREFIX + "xmlns") or document.get(ATTRIBUTE_PREFIX + "Xmlns")
    return str(namespace) if namespace else None


class Iso20022Message:
    """
    Base class for all message mappers.

    Subclasses are frozen dataclasses holding the typed content of one
    document. They implement ``from_document_object`` (raw tree to typed
    object) and ``to_json`` (typed object back to the raw tree); this class
    provides the XML and JSON entry points around those two.
    """

    message_type: ClassVar[MessageType]
    serialization_namespace: ClassVar[str]

    @classmethod
    def label(cls) -> str:
        return cls.message_type.label

    @classmethod
    def from_xml(cls, xml: Union[str, bytes]):
        """
        Parses an XML payload into a typed message.

        Raises:
            InvalidXmlError: If the payload is not XML or has no ``Document`` root.
            InvalidXmlNamespaceError: If the namespace belongs to another message type.
            InvalidStructureError: If required content is missing or malformed.
        """
        tree = xmltree.parse(xml)
        if "Document" not in tree:
            raise InvalidXmlError("Invalid XML format")

        namespace = document_namespace(tree)
        if not namespace or not namespace.startswith(cls.message_type.namespace_prefix):
            raise InvalidXmlNamespaceError(f"Invalid {cls.label()} namespace")

        logger.debug("Mapping %s document with namespace %s", cls.label(), namespace)
        return cls.from_document_object(tree)

    @classmethod
    def from_json(cls, payload: Union[str, bytes, RawTree]):
        """
        Builds a typed message from the JSON rendering of the raw tree.

        No namespace check is made on the JSON path.
        """
        tree = xmltree.parse_json(payload)
        if "Document" not in tree:
            raise InvalidFormatError("Invalid JSON format")
        return cls.from_document_object(tree)

    @classmethod
    def from_document_object(cls, tree: RawTree):
        raise NotImplementedError

    def to_json(self) -> RawTree:
        raise NotImplementedError

    def to_document_json(self) -> RawTree:
        """
        Returns the raw tree with the serialization namespaces declared on
        ``Document``, so it can be mapped back without an explicit type.
        """
        tree = self.to_json()
        document: Dict[str, Any] = {
            ATTRIBUTE_PREFIX + "xmlns": self.serialization_namespace,
            ATTRIBUTE_PREFIX + "xmlns:xsi": XSI_NAMESPACE,
        }
        document.update(
            (key, value)
            for key, value in tree["Document"].items()
            if key.lower() not in ("@_xmlns", "@_xmlns:xsi")
        )
        return {"Document": document}

    def serialize(self) -> str:
        """Renders the message as an XML document in its serialization namespace."""
        logger.debug("Serializing %s document", self.label())
        return xmltree.build(self.to_document_json())
