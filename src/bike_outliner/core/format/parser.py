"""Parse outline documents into a Document tree."""

from lxml import etree
from loguru import logger

from bike_outliner.core.format.inline import clean_element
from bike_outliner.errors import ParseError
from bike_outliner.models.node import Document, Kind, Node

DOCUMENT_PARSER = etree.XMLParser(
    resolve_entities=False, no_network=True, remove_comments=True, remove_pis=True
)

DEFAULT_ROOT_ID = "root"


def _strip_namespaces(root: etree._Element) -> None:
    for element in root.iter():
        if isinstance(element.tag, str):
            element.tag = etree.QName(element).localname
    etree.cleanup_namespaces(root)


def _load_xml(text: str) -> etree._Element:
    if not text or not text.strip():
        msg = "Document is empty"
        raise ParseError(msg)
    try:
        root = etree.fromstring(text.lstrip("\ufeff").strip().encode("utf-8"), DOCUMENT_PARSER)
    except etree.XMLSyntaxError as e:
        msg = f"Document is not well-formed: {e}"
        raise ParseError(msg) from e
    _strip_namespaces(root)
    return root


def _find_title(root: etree._Element) -> str:
    title = root.find("head/title")
    if title is None:
        return ""
    return "".join(title.itertext()).strip()


def _find_root_list(root: etree._Element) -> etree._Element | None:
    """Locate the root list, synthesizing one around loose items.

    Returns None for a body without any content.
    """
    if root.tag == "ul":
        return root

    body = root if root.tag == "body" else root.find("body")
    if body is None:
        msg = f"No body element in <{root.tag}> document"
        raise ParseError(msg)

    root_list = body.find("ul")
    if root_list is not None:
        return root_list

    loose = body.findall("li")
    if loose:
        logger.debug("Wrapping {} loose items in a root list", len(loose))
        root_list = etree.Element("ul", id=DEFAULT_ROOT_ID)
        for item in loose:
            root_list.append(item)
        return root_list

    if len(body) == 0 and not (body.text or "").strip():
        return None
    msg = "No outline list found in document body"
    raise ParseError(msg)


def _read_kind(item: etree._Element) -> Kind:
    value = item.get("data-type")
    if not value:
        return Kind.PLAIN
    try:
        return Kind(value)
    except ValueError:
        logger.warning("Unknown item type {!r}, reading as plain", value)
        return Kind.PLAIN


def _read_item(item: etree._Element, document: Document) -> Node:
    node_id = item.get("id")
    if not node_id or node_id in document.nodes:
        node_id = document.new_id()

    kind = _read_kind(item)
    node = Node(id=node_id, kind=kind, done=kind is Kind.TASK and item.get("data-done") == "true")
    if kind is Kind.HR:
        node.body = None
    else:
        paragraph = item.find("p")
        node.body = "" if paragraph is None else clean_element(paragraph)
    return node


def _read_list(items: etree._Element, parent: Node, document: Document) -> None:
    for item in items.iterchildren("li"):
        node = _read_item(item, document)
        if parent.children is None:
            parent.children = []
        parent.children.append(node.id)
        node.parent_id = parent.id
        document.nodes[node.id] = node

        for nested in item.iterchildren("ul"):
            if node.kind is Kind.HR:
                # A rule never owns items: its nested items follow it instead.
                logger.debug("Hoisting items nested under rule {}", node.id)
                _read_list(nested, parent, document)
            else:
                _read_list(nested, node, document)

        node.folded = node.has_children and item.get("data-folded") == "true"


def parse(text: str) -> Document:
    """Parse outline markup into a Document.

    Raises:
        ParseError: if the input is empty, not well-formed, or has no outline list.
    """
    root = _load_xml(text)
    title = _find_title(root)
    root_list = _find_root_list(root)
    if root_list is None:
        logger.debug("Document body is empty")
        return Document.empty(title=title, root_id=DEFAULT_ROOT_ID)

    document = Document.empty(title=title, root_id=root_list.get("id") or DEFAULT_ROOT_ID)
    _read_list(root_list, document.root, document)
    logger.debug("Parsed {} items", len(document.nodes) - 1)
    return document
