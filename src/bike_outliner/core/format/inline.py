"""Inline body markup: normalization and plain-text conversion.

Bodies are stored as the inner XML markup of an item's ``p`` element. Markup
is kept opaque apart from stripping render-time decorations.
"""

import html

from lxml import etree

from bike_outliner.errors import FormatError

_FRAGMENT_PARSER = etree.XMLParser(
    resolve_entities=False, no_network=True, remove_comments=True, remove_pis=True
)

# Elements produced by rendering; removed together with their content.
DECORATION_CLASSES = frozenset({"task-checkbox", "fold-toggle", "rendered-math", "katex-error"})
TRANSIENT_CLASSES = frozenset({"selected", "dragging", "drop-target-inside"})
EDITING_ATTRIBUTES = ("contenteditable", "tabindex", "draggable")

_CHECKBOX_GAP = (" ", "\u00a0")


def parse_fragment(body: str) -> etree._Element:
    """Parse inline markup into a detached ``p`` element."""
    try:
        return etree.fromstring(f"<p>{body}</p>", _FRAGMENT_PARSER)
    except etree.XMLSyntaxError as e:
        msg = f"Inline markup is not well-formed: {e}"
        raise FormatError(msg) from e


def inner_markup(element: etree._Element) -> str:
    """Return the markup between an element's start and end tags."""
    parts = [html.escape(element.text or "", quote=False)]
    parts.extend(
        etree.tostring(child, encoding="unicode", with_tail=True) for child in element
    )
    return "".join(parts)


def _classes(element: etree._Element) -> list[str]:
    return (element.get("class") or "").split()


def _remove_keeping_tail(element: etree._Element) -> None:
    parent = element.getparent()
    if parent is None:
        return
    tail = element.tail or ""
    previous = element.getprevious()
    if tail:
        if previous is not None:
            previous.tail = (previous.tail or "") + tail
        else:
            parent.text = (parent.text or "") + tail
    parent.remove(element)


def _next_decoration(element: etree._Element) -> etree._Element | None:
    for child in element.iterdescendants():
        if isinstance(child.tag, str) and DECORATION_CLASSES.intersection(_classes(child)):
            return child
    return None


def clean_element(element: etree._Element) -> str:
    """Strip presentation state from a body element in place and return its markup.

    A task checkbox is rendered as a glyph followed by one space, so the space
    goes with the glyph. Leading whitespace typed by the user is kept.
    """
    while (decoration := _next_decoration(element)) is not None:
        tail = decoration.tail or ""
        if "task-checkbox" in _classes(decoration) and tail.startswith(_CHECKBOX_GAP):
            decoration.tail = tail[1:]
        _remove_keeping_tail(decoration)

    for child in element.iter():
        if not isinstance(child.tag, str):
            continue
        for attribute in EDITING_ATTRIBUTES:
            child.attrib.pop(attribute, None)
        if "class" in child.attrib:
            kept = [c for c in _classes(child) if c not in TRANSIENT_CLASSES]
            if kept:
                child.set("class", " ".join(kept))
            else:
                del child.attrib["class"]

    breaks = list(element.iter("br"))
    if breaks:
        others = [c for c in element.iterdescendants() if c.tag != "br"]
        if not others and not "".join(element.itertext()).strip():
            return ""
        for br in breaks:
            _remove_keeping_tail(br)

    if len(element) == 0 and not (element.text or "").strip():
        return ""

    return inner_markup(element)


def clean_body(body: str) -> str:
    """Normalize inline markup the way it is persisted."""
    if not body:
        return ""
    return clean_element(parse_fragment(body))


def text_to_body(text: str) -> str:
    """Convert plain text into inline markup."""
    return html.escape(text, quote=False)


def body_to_text(body: str | None) -> str:
    """Flatten inline markup to its text content."""
    if not body:
        return ""
    return "".join(parse_fragment(body).itertext())
