"""Render outlines as markdown."""

import io

from bike_outliner.core.format.inline import body_to_text
from bike_outliner.models.node import Document, Kind, Node


def _item_line(node: Node) -> str:
    text = body_to_text(node.body)
    match node.kind:
        case Kind.HR:
            return "---"
        case Kind.TASK:
            return ("- [x] " if node.done else "- [ ] ") + text
        case Kind.HEADING:
            return f"- **{text}**"
        case Kind.NOTE:
            return f"- _{text}_"
        case Kind.ORDERED:
            return f"1. {text}"
        case Kind.LATEX:
            return f"- $${text}$$"
        case _:
            return f"- {text}"


def render_outline_as_markdown(
    document: Document,
    node: Node | None = None,
    *,
    max_depth: int | None = None,
) -> str:
    """Render the items below ``node`` (root by default) as indented markdown.

    Args:
        document: The outline to render.
        node: Start node; its own line is not rendered, only its descendants.
        max_depth: Max levels below the start node to include (None = unlimited).

    Returns:
        Markdown string with bullet-list hierarchy.
    """
    start = node or document.root
    base_depth = document.depth_of(start)

    out = io.StringIO()
    for item in document.iter_items(start):
        depth = document.depth_of(item) - base_depth - 1
        if max_depth is not None and depth > max_depth:
            continue
        indent = "    " * depth

        # Write content lines
        lines = _item_line(item).split("\n")
        out.write(f"{indent}{lines[0]}\n")
        for line in lines[1:]:
            out.write(f"{indent}  {line}\n")

        # Truncation indicator when children are cut off by max_depth
        if max_depth is not None and depth == max_depth and item.has_children:
            count = len(item.children or ())
            child_indent = "    " * (depth + 1)
            noun = "child" if count == 1 else "children"
            out.write(f"{child_indent}- ... ({count} more {noun}, id={item.id})\n")

    return out.getvalue()
