from __future__ import annotations

from repomap.schemas import DiagramGraph, GraphEdge, GraphNode

SHAPES = {
    "box": ('["', '"]'),
    "circle": ('(("', '"))'),
    "cylinder": ('[("', '")]'),
    "hexagon": ('{{"', '"}}'),
    "parallelogram": ('[/"', '"/]'),
}

ARROWS = {
    "solid": "-->",
    "dotted": "-.->",
    "thick": "==>",
}

CLASS_DEFS = {
    "authRequired": "fill:#fee2e2,stroke:#ef4444,color:#991b1b",
    "public": "fill:#dcfce7,stroke:#22c55e,color:#166534",
    "query": "fill:#dbeafe,stroke:#3b82f6,color:#1e40af",
    "mutation": "fill:#fce7f3,stroke:#ec4899,color:#9d174d",
    "context": "fill:#d1fae5,stroke:#10b981,color:#065f46",
}


def escape_label(value: str) -> str:
    return value.replace('"', "#quot;").replace("\n", " ")


def render_node(node: GraphNode) -> str:
    opening, closing = SHAPES.get(node.shape, SHAPES["box"])
    return f"{node.id}{opening}{escape_label(node.label)}{closing}"


def render_edge(edge: GraphEdge) -> str:
    arrow = ARROWS.get(edge.style, ARROWS["solid"])
    if edge.label:
        return f'{edge.source} {arrow}|"{escape_label(edge.label)}"| {edge.target}'
    return f"{edge.source} {arrow} {edge.target}"


def render_mermaid(graph: DiagramGraph, comment: str | None = None) -> str:
    """Mermaid ``flowchart`` text for a diagram graph."""
    lines = [f"flowchart {graph.direction}"]
    if comment:
        lines.append(f"  %% {comment}")

    for node in graph.nodes:
        if node.group is None:
            lines.append(f"  {render_node(node)}")

    for group_id, label in graph.groups.items():
        members = [node for node in graph.nodes if node.group == group_id]
        header = group_id if label == group_id else f'{group_id}["{escape_label(label)}"]'
        lines.append("")
        lines.append(f"  subgraph {header}")
        lines.append("    direction TB")
        for node in members:
            lines.append(f"    {render_node(node)}")
        lines.append("  end")

    if graph.edges:
        lines.append("")
        for edge in graph.edges:
            lines.append(f"  {render_edge(edge)}")

    used_classes = list(dict.fromkeys(node.css_class for node in graph.nodes if node.css_class))
    if used_classes:
        lines.append("")
        for name in used_classes:
            if name in CLASS_DEFS:
                lines.append(f"  classDef {name} {CLASS_DEFS[name]}")
        for node in graph.nodes:
            if node.css_class:
                lines.append(f"  class {node.id} {node.css_class}")

    return "\n".join(lines)
