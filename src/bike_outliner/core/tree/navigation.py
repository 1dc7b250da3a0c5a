"""Tree navigation: visible predecessor/successor, breadcrumbs, focus after delete."""

from bike_outliner.models.node import Document, Node


def _siblings(document: Document, node: Node) -> list[str]:
    parent = document.parent_of(node)
    if parent is None:
        return []
    return parent.children or []


def _last_visible_descendant(document: Document, node: Node) -> Node:
    current = node
    while not current.folded and current.has_children:
        current = document.nodes[current.children[-1]]  # type: ignore[index]
    return current


def previous_visible(document: Document, node: Node) -> Node | None:
    """Return the item shown directly above ``node``.

    Descendants of folded items are skipped. Returns None at the top of the outline.
    """
    if not document.is_attached(node) or node.id == document.root_id:
        return None

    siblings = _siblings(document, node)
    index = siblings.index(node.id)
    if index > 0:
        return _last_visible_descendant(document, document.nodes[siblings[index - 1]])

    parent = document.parent_of(node)
    if parent is None or parent.id == document.root_id:
        return None
    return parent


def next_visible(document: Document, node: Node) -> Node | None:
    """Return the item shown directly below ``node``, or None at the end."""
    if not document.is_attached(node) or node.id == document.root_id:
        return None

    if not node.folded and node.has_children:
        return document.nodes[node.children[0]]  # type: ignore[index]

    current: Node | None = node
    while current is not None and current.id != document.root_id:
        siblings = _siblings(document, current)
        index = siblings.index(current.id)
        if index + 1 < len(siblings):
            return document.nodes[siblings[index + 1]]
        current = document.parent_of(current)
    return None


def focus_after_delete(document: Document, node: Node) -> Node | None:
    """Pick the item that should gain focus once ``node`` is deleted.

    Order: previous visible item, else next visible item outside the deleted
    subtree, else the parent item. None when nothing would remain.
    """
    candidate = previous_visible(document, node)
    if candidate is not None:
        return candidate

    candidate = next_visible(document, node)
    while candidate is not None and document.is_descendant(candidate, node):
        candidate = next_visible(document, candidate)
    if candidate is not None:
        return candidate

    parent = document.parent_of(node)
    if parent is not None and parent.id != document.root_id:
        return parent
    return None


def ancestors(document: Document, node: Node) -> tuple[Node, ...]:
    """Return the item's ancestors from the top level down (root container excluded)."""
    chain: list[Node] = []
    current = document.parent_of(node)
    while current is not None and current.id != document.root_id:
        chain.append(current)
        current = document.parent_of(current)
    return tuple(reversed(chain))
