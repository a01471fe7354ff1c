
import json
from typing import Any, List

from storytest.models.adf import Block, Paragraph, Heading, ListBlock, OtherBlock

LIST_TYPES = {'bulletList': False, 'orderedList': True}


def _children(node: Any) -> List[Any]:
    # Jira gives no schema guarantee, so anything that is not a list of nodes is empty
    if not isinstance(node, dict):
        return []
    content = node.get('content')
    if not isinstance(content, list):
        return []
    return content


def _runs(node: Any) -> List[str]:
    runs = []
    for inline in _children(node):
        text = inline.get('text') if isinstance(inline, dict) else None
        runs.append(text if isinstance(text, str) else '')
    return runs


def parse_block(node: Any) -> Block:
    node_type = node.get('type') if isinstance(node, dict) else None
    if node_type == 'paragraph':
        return Paragraph(_runs(node))
    if node_type == 'heading':
        return Heading(_runs(node))
    if node_type in LIST_TYPES:
        # every paragraph of every list item is a line of its own
        items = [_runs(inner) for list_item in _children(node) for inner in _children(list_item)]
        return ListBlock(ordered=LIST_TYPES[node_type], items=items)
    return OtherBlock(node_type if isinstance(node_type, str) else '')


def parse_document(doc: Any) -> List[Block]:
    return [parse_block(node) for node in _children(doc)]


def block_text(block: Block) -> str:
    if isinstance(block, (Paragraph, Heading)):
        return ''.join(block.runs)
    if isinstance(block, ListBlock):
        return '\n'.join(''.join(runs) for runs in block.items)
    return ''


def render_to_text(doc: Any) -> str:
    """Flatten a rich-text document into plain text, one line per top-level block.

    Missing or malformed documents render as an empty string; unknown block
    types keep their line but contribute no text.
    """
    return '\n'.join(block_text(block) for block in parse_document(doc))


def field_to_text(value: Any) -> str:
    """Convert an arbitrary Jira field value to text."""
    if not value:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get('content'), list):
        return render_to_text(value)
    if isinstance(value, list):
        return '\n'.join(
            v if isinstance(v, str) else json.dumps(v, separators=(',', ':'), ensure_ascii=False)
            for v in value
        )
    return str(value)
