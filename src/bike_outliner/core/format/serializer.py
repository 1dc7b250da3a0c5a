"""Serialize a Document to outline markup."""

import html
from typing import Any

from lxml import etree
from loguru import logger

from bike_outliner.config import FALLBACK_TITLE
from bike_outliner.core.format.inline import clean_body, clean_element, parse_fragment
from bike_outliner.core.format.parser import DOCUMENT_PARSER
from bike_outliner.errors import FormatError, SerializeError
from bike_outliner.models.node import Document, Kind, Node

XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"


def _write_body(li: etree._Element, node: Node) -> None:
    paragraph = etree.SubElement(li, "p")
    if not node.body:
        paragraph.text = ""
        return
    try:
        fragment = parse_fragment(node.body)
    except FormatError as e:
        msg = f"Body of item {node.id!r} is not well-formed markup"
        raise SerializeError(msg) from e

    if not clean_element(fragment):
        paragraph.text = ""
        return
    paragraph.text = fragment.text or ""
    for child in list(fragment):
        paragraph.append(child)


def _write_list(parent: etree._Element, node: Node, document: Document) -> None:
    for child in document.children_of(node):
        li = etree.SubElement(parent, "li", id=child.id)
        if child.kind is not Kind.PLAIN:
            li.set("data-type", str(child.kind))
        if child.kind is Kind.TASK and child.done:
            li.set("data-done", "true")
        if child.folded and child.has_children:
            li.set("data-folded", "true")

        if child.kind is not Kind.HR:
            _write_body(li, child)
        else:
            li.text = ""
        if child.has_children:
            _write_list(etree.SubElement(li, "ul"), child, document)


def serialize(document: Document, title: str | None = None) -> str:
    """Serialize ``document`` to a complete outline file.

    Raises:
        SerializeError: if a body cannot be written or the result does not re-parse.
    """
    root_list = etree.Element("ul", id=document.root_id)
    _write_list(root_list, document.root, document)
    if len(root_list) == 0:
        root_list.text = ""

    outline = etree.tostring(root_list, encoding="unicode", pretty_print=True)
    heading = html.escape(title or document.title or FALLBACK_TITLE, quote=False)
    text = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<html xmlns="{XHTML_NAMESPACE}">\n'
        "<head>\n"
        '<meta charset="utf-8"/>\n'
        f"<title>{heading}</title>\n"
        "</head>\n"
        "<body>\n"
        f"{outline}"
        "</body>\n"
        "</html>\n"
    )

    try:
        etree.fromstring(text.encode("utf-8"), DOCUMENT_PARSER)
    except etree.XMLSyntaxError as e:
        msg = f"Serialized outline is not well-formed: {e}"
        raise SerializeError(msg) from e
    logger.debug("Serialized {} items ({} chars)", document.item_count, len(text))
    return text


def _structure_of(node: Node, document: Document) -> tuple[Any, ...]:
    body = None if node.kind is Kind.HR else clean_body(node.body or "")
    return (
        node.id,
        str(node.kind),
        node.kind is Kind.TASK and node.done,
        node.folded and node.has_children,
        body,
        tuple(_structure_of(child, document) for child in document.children_of(node)),
    )


def outline_structure(document: Document) -> tuple[Any, ...]:
    """Return a comparable form of the tree, normalized the way it is persisted."""
    return tuple(_structure_of(child, document) for child in document.children_of(document.root))
