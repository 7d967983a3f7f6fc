#!/usr/bin/env python3
"""Collect the model-authored text out of a Responses API payload."""

import argparse, json, pathlib
from dataclasses import dataclass
from typing import Any, Tuple, Union


@dataclass(frozen=True)
class TextLeaf:
    text: str


@dataclass(frozen=True)
class Container:
    children: Tuple['Node', ...] = ()


@dataclass(frozen=True)
class Other:
    children: Tuple['Node', ...] = ()


Node = Union[TextLeaf, Container, Other]


def to_node(raw: Any) -> Node:
    """Convert a decoded response (dicts, lists, scalars or an SDK model) into a node tree."""
    if hasattr(raw, 'model_dump'):
        raw = raw.model_dump()
    if isinstance(raw, dict):
        kind = raw.get('type')
        if kind == 'output_text' and isinstance(raw.get('text'), str):
            return TextLeaf(raw['text'])
        if kind == 'message':
            content = raw.get('content')
            items = content if isinstance(content, list) else []
            return Container(tuple(to_node(c) for c in items))
        return Other(tuple(to_node(v) for v in raw.values()))
    if isinstance(raw, (list, tuple)):
        return Other(tuple(to_node(v) for v in raw))
    return Other()


def extract_text(node: Node) -> str:
    if isinstance(node, TextLeaf):
        return node.text
    if isinstance(node, (Container, Other)):
        return "".join(extract_text(child) for child in node.children)
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def extract_response_text(raw: Any) -> str:
    """Concatenate every output_text fragment in document order; empty input gives ''."""
    if raw is None:
        return ""
    return extract_text(to_node(raw))


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument('-i', '--input', required=True, help='Saved Responses API JSON payload')
    args = ap.parse_args()

    path = pathlib.Path(args.input)
    if not path.exists():
        raise SystemExit(f"Error: {path} not found")

    payload = json.loads(path.read_text(encoding='utf-8'))
    print(extract_response_text(payload))

if __name__ == '__main__':
    main()
