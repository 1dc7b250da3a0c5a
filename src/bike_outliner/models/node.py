"""Domain models for the outline tree."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum

from bike_outliner.core.tree.ids import generate_node_id

DEFAULT_LATEX = r"\sum_{i=1}^{n} i = \frac{n(n+1)}{2}"


class Kind(StrEnum):
    """Closed set of item types."""

    PLAIN = "plain"
    HEADING = "heading"
    NOTE = "note"
    TASK = "task"
    ORDERED = "ordered"
    UNORDERED = "unordered"
    HR = "hr"
    LATEX = "latex"


# Kinds a new sibling takes over from the item it was created after.
INHERITABLE_KINDS = frozenset(
    {Kind.HEADING, Kind.NOTE, Kind.TASK, Kind.ORDERED, Kind.UNORDERED}
)


class Position(StrEnum):
    """Drop position relative to a target node."""

    BEFORE = "before"
    AFTER = "after"
    INSIDE = "inside"


class Origin(StrEnum):
    """Which backend, if any, owns the open document."""

    NONE = "none"
    NEWLY_CREATED = "new"
    LOADED_COPY = "copy"
    RECOVERED_DRAFT = "draft"
    EXTERNAL_FILE = "external"
    OWNED_STORE = "store"


@dataclass
class Node:
    """A single item of the outline.

    ``children`` is None while no child container is attached. ``parent_id``
    is a navigation handle into the owning Document, never an ownership link.
    """

    id: str
    kind: Kind = Kind.PLAIN
    done: bool = False
    folded: bool = False
    body: str | None = ""
    parent_id: str | None = None
    children: list[str] | None = None

    @property
    def has_children(self) -> bool:
        return bool(self.children)


@dataclass
class Document:
    """An outline: an arena of nodes hanging off one root container."""

    root_id: str
    nodes: dict[str, Node] = field(default_factory=dict)
    title: str = ""
    # Ids of deleted nodes; never handed out again.
    retired: set[str] = field(default_factory=set)

    @classmethod
    def empty(cls, *, title: str = "", root_id: str = "root") -> "Document":
        """Create a document whose root has no children."""
        doc = cls(root_id=root_id, title=title)
        doc.nodes[root_id] = Node(id=root_id)
        return doc

    @property
    def root(self) -> Node:
        return self.nodes[self.root_id]

    def get(self, node_id: str | None) -> Node | None:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def new_id(self) -> str:
        """Return a fresh id not used by any live or deleted node of this document."""
        return generate_node_id(self.nodes.keys() | self.retired)

    def parent_of(self, node: Node) -> Node | None:
        return self.get(node.parent_id)

    def children_of(self, node: Node) -> list[Node]:
        return [self.nodes[cid] for cid in node.children or ()]

    def is_attached(self, node: Node | None) -> bool:
        """Return True if ``node`` is this document's live node and reachable from root."""
        if node is None or self.nodes.get(node.id) is not node:
            return False
        current = node
        seen: set[str] = set()
        while current.id != self.root_id:
            if current.id in seen:
                return False
            seen.add(current.id)
            parent = self.get(current.parent_id)
            if parent is None or current.id not in (parent.children or ()):
                return False
            current = parent
        return True

    def is_descendant(self, node: Node, ancestor: Node) -> bool:
        """Return True if ``node`` lies strictly below ``ancestor``."""
        current = self.parent_of(node)
        while current is not None:
            if current is ancestor:
                return True
            current = self.parent_of(current)
        return False

    def iter_items(self, start: Node | None = None) -> Iterator[Node]:
        """Yield items below ``start`` (root by default) in document order."""
        todo = list(reversed(self.children_of(start or self.root)))
        while todo:
            node = todo.pop()
            yield node
            todo.extend(reversed(self.children_of(node)))

    def depth_of(self, node: Node) -> int:
        """Nesting level of an item; top-level items are at depth 0."""
        depth = -1
        current: Node | None = node
        while current is not None and current.id != self.root_id:
            depth += 1
            current = self.parent_of(current)
        return depth

    @property
    def item_count(self) -> int:
        return sum(1 for _ in self.iter_items())

    @property
    def is_empty(self) -> bool:
        return not self.root.has_children
