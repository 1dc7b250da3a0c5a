"""Structural edits on a live outline document.

All operations are synchronous and never raise for bad targets: an operation on
a node that is not attached to the document (or that would create a cycle) is
rejected, logged at debug level, and reported through the return value.
"""

from collections.abc import Callable

from loguru import logger

from bike_outliner.core.tree import navigation
from bike_outliner.errors import TreeStructureError
from bike_outliner.models.node import (
    DEFAULT_LATEX,
    INHERITABLE_KINDS,
    Document,
    Kind,
    Node,
    Position,
)

ChangeListener = Callable[[str], None]


class NodeStore:
    """Owns the structural invariants of one Document.

    ``on_change`` is called with the operation name after every accepted edit.
    """

    def __init__(self, document: Document, *, on_change: ChangeListener | None = None) -> None:
        self.document = document
        self.on_change = on_change

    # --- Creation & deletion ---

    def create_sibling(self, after: Node) -> Node | None:
        """Insert a new item right after ``after`` and return it."""
        if not self._is_item(after):
            self._reject("create_sibling", after)
            return None

        kind = after.kind if after.kind in INHERITABLE_KINDS else Kind.PLAIN
        node = self._new_node(kind)
        parent, siblings = self._container(after)
        self._insert(node, parent, siblings.index(after.id) + 1)
        self._changed("create_sibling")
        return node

    def create_child(self, parent: Node | None = None) -> Node | None:
        """Append a new plain item as the last child of ``parent`` (root by default)."""
        target = parent or self.document.root
        if not self.document.is_attached(target) or target.kind is Kind.HR:
            self._reject("create_child", target)
            return None

        node = self._new_node(Kind.PLAIN)
        self._insert(node, target, len(target.children or ()))
        self._changed("create_child")
        return node

    def delete_node(self, node: Node) -> bool:
        """Remove ``node`` and its whole subtree."""
        if not self._is_item(node):
            return self._reject("delete_node", node)

        parent = self._detach(node)
        for gone in [node, *self.document.iter_items(node)]:
            del self.document.nodes[gone.id]
            self.document.retired.add(gone.id)
        node.parent_id = None
        logger.debug("Deleted {} from {}", node.id, parent.id)
        self._changed("delete_node")
        return True

    # --- Re-parenting ---

    def indent(self, node: Node) -> bool:
        """Make ``node`` the last child of its preceding sibling."""
        if not self._is_item(node):
            return self._reject("indent", node)

        previous = self._sibling(node, -1)
        if previous is None or previous.kind is Kind.HR:
            logger.debug("Indent prevented for {}: no valid previous sibling", node.id)
            return False

        self._detach(node)
        self._insert(node, previous, len(previous.children or ()))
        self._changed("indent")
        return True

    def outdent(self, node: Node) -> bool:
        """Move ``node`` and its following siblings out to follow their parent."""
        if not self._is_item(node):
            return self._reject("outdent", node)

        parent, siblings = self._container(node)
        if parent.id == self.document.root_id:
            logger.debug("Outdent prevented for {}: already at top level", node.id)
            return False
        grandparent, uncles = self._container(parent)

        index = siblings.index(node.id)
        block = siblings[index:]
        del siblings[index:]
        self._prune(parent)

        at = uncles.index(parent.id) + 1
        uncles[at:at] = block
        for moved_id in block:
            self.document.nodes[moved_id].parent_id = grandparent.id
        self._changed("outdent")
        return True

    def move_up(self, node: Node) -> bool:
        return self._swap(node, -1, "move_up")

    def move_down(self, node: Node) -> bool:
        return self._swap(node, 1, "move_down")

    def move_to(self, node: Node, target: Node, position: Position | str) -> bool:
        """Relocate ``node`` before, after or inside ``target``.

        Moving a node next to or into itself or its own subtree is rejected.
        ``inside`` an ``hr`` falls back to ``after``.
        """
        position = Position(position)
        if not self._is_item(node) or not self.document.is_attached(target):
            return self._reject("move_to", node)
        if target is node or self.document.is_descendant(target, node):
            logger.debug("Move of {} into its own subtree rejected", node.id)
            return False
        if target.id == self.document.root_id and position is not Position.INSIDE:
            return self._reject("move_to", target)

        if position is Position.INSIDE and target.kind is Kind.HR:
            position = Position.AFTER

        self._detach(node)
        if position is Position.INSIDE:
            self._insert(node, target, len(target.children or ()))
            target.folded = False
        else:
            parent, siblings = self._container(target)
            at = siblings.index(target.id) + (position is Position.AFTER)
            self._insert(node, parent, at)
        self._changed("move_to")
        return True

    # --- Item state ---

    def change_kind(self, node: Node, new_kind: Kind | str) -> bool:
        """Retype ``node`` in place, keeping its id and position."""
        new_kind = Kind(new_kind)
        if not self._is_item(node):
            return self._reject("change_kind", node)
        if new_kind is node.kind:
            return False
        if new_kind is Kind.HR and node.has_children:
            logger.debug("Cannot turn {} into a rule while it has children", node.id)
            return False

        old_kind = node.kind
        if old_kind is Kind.TASK:
            node.done = False
        if old_kind is Kind.HR and node.body is None:
            node.body = ""

        node.kind = new_kind
        if new_kind is Kind.HR:
            node.body = None
            node.folded = False
        elif new_kind is Kind.LATEX and not (node.body or "").strip():
            node.body = DEFAULT_LATEX
        logger.debug("Changed kind of {} from {} to {}", node.id, old_kind, new_kind)
        self._changed("change_kind")
        return True

    def set_body(self, node: Node, body: str) -> bool:
        if not self._is_item(node) or node.kind is Kind.HR:
            return self._reject("set_body", node)
        if node.body == body:
            return False
        node.body = body
        self._changed("set_body")
        return True

    def set_done(self, node: Node, done: bool) -> bool:
        if not self._is_item(node) or node.kind is not Kind.TASK:
            return self._reject("set_done", node)
        if node.done == done:
            return False
        node.done = done
        self._changed("set_done")
        return True

    def toggle_done(self, node: Node) -> bool:
        return self.set_done(node, not node.done)

    def set_folded(self, node: Node, folded: bool) -> bool:
        """Fold or unfold ``node``; only items with children can be folded."""
        if not self._is_item(node) or not node.has_children:
            return self._reject("set_folded", node)
        if node.folded == folded:
            return False
        node.folded = folded
        self._changed("set_folded")
        return True

    def toggle_fold(self, node: Node) -> bool:
        return self.set_folded(node, not node.folded)

    # --- Traversal ---

    def previous_visible(self, node: Node) -> Node | None:
        return navigation.previous_visible(self.document, node)

    def next_visible(self, node: Node) -> Node | None:
        return navigation.next_visible(self.document, node)

    # --- Internals ---

    def _is_item(self, node: Node | None) -> bool:
        return (
            node is not None
            and node.id != self.document.root_id
            and self.document.is_attached(node)
        )

    def _new_node(self, kind: Kind) -> Node:
        return Node(id=self.document.new_id(), kind=kind)

    def _container(self, node: Node) -> tuple[Node, list[str]]:
        """Return the parent of a linked node and the parent's child id list."""
        parent = self.document.parent_of(node)
        if parent is None or parent.children is None or node.id not in parent.children:
            msg = f"Node {node.id!r} is not in its parent's child list"
            raise TreeStructureError(msg)
        return parent, parent.children

    def _sibling(self, node: Node, offset: int) -> Node | None:
        _, siblings = self._container(node)
        index = siblings.index(node.id) + offset
        if 0 <= index < len(siblings):
            return self.document.nodes[siblings[index]]
        return None

    def _swap(self, node: Node, offset: int, operation: str) -> bool:
        if not self._is_item(node):
            return self._reject(operation, node)
        other = self._sibling(node, offset)
        if other is None:
            logger.debug("{} prevented for {}: at list boundary", operation, node.id)
            return False
        _, siblings = self._container(node)
        a, b = siblings.index(node.id), siblings.index(other.id)
        siblings[a], siblings[b] = siblings[b], siblings[a]
        self._changed(operation)
        return True

    def _insert(self, node: Node, parent: Node, index: int) -> None:
        if parent.children is None:
            parent.children = []
        parent.children.insert(index, node.id)
        node.parent_id = parent.id
        self.document.nodes[node.id] = node

    def _detach(self, node: Node) -> Node:
        """Unlink ``node`` from its parent, dropping the container if it empties."""
        parent, siblings = self._container(node)
        siblings.remove(node.id)
        self._prune(parent)
        return parent

    def _prune(self, parent: Node) -> None:
        if parent.children is not None and not parent.children:
            parent.children = None
            parent.folded = False
            logger.debug("Detached empty child list of {}", parent.id)

    def _reject(self, operation: str, node: Node | None) -> bool:
        logger.debug("{} rejected: {!r} is not a valid target", operation, node and node.id)
        return False

    def _changed(self, operation: str) -> None:
        if self.on_change is not None:
            self.on_change(operation)
