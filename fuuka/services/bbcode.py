#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
BBCode parser
=============
Parses the small bracket-tag language used in post bodies into HTML.

Supported tags
--------------
[code]  [spoiler]  [sub]  [sup]  [b]  [i]  [m]  [o]  [s]  [u]  [expert]
[moot]  (archive primary posts only; start and end come from the theme settings)

The input is already HTML-escaped and may contain anchors produced by the
reference passes; those are opaque text to this parser.

Grammar
-------
Each tag has a content type (``code`` or ``inline``) and may open only where
the enclosing content type is ``block`` (the document) or ``inline``.  All
formatting tags are forbidden anywhere below a ``code`` node, where they stay
literal text.  Closers with no matching opener stay literal; openers that are
never closed are reverted to literal text with their children kept.

Render policy
-------------
Applied per node, after its children are rendered:

  * empty content      → the tag disappears entirely
  * [code] over more than one non-empty line → <pre>content</pre>
  * the document root counts as an ancestor; [sub]/[sup] with more than one
    ancestor, or any tag with more than four, loses its tag but keeps content
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Optional, Union


# -----------------------------------------------------------------------------

BLOCK = "block"
INLINE = "inline"
CODE = "code"

MAX_ANCESTORS = 4
_SCRIPT_TAGS = frozenset({"sub", "sup"})

_TAG_RE = re.compile(r"\[(/?)([A-Za-z]+)\]")
_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")


# -----------------------------------------------------------------------------
# Grammar
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class TagSpec:
    name: str
    start: str
    end: str
    content_type: str = INLINE
    allowed_in: frozenset[str] = frozenset({BLOCK, INLINE})
    not_allowed_within: frozenset[str] = frozenset({CODE})


@dataclass(frozen=True)
class Grammar:
    tags: Mapping[str, TagSpec]

    def get(self, name: str) -> Optional[TagSpec]:
        return self.tags.get(name.lower())


_BASE_TAGS: tuple[TagSpec, ...] = (
    TagSpec("code",    "<code>",                       "</code>", CODE, not_allowed_within=frozenset()),
    TagSpec("spoiler", '<span class="spoiler">',       "</span>"),
    TagSpec("sub",     "<sub>",                        "</sub>"),
    TagSpec("sup",     "<sup>",                        "</sup>"),
    TagSpec("b",       "<b>",                          "</b>"),
    TagSpec("i",       "<em>",                         "</em>"),
    TagSpec("m",       '<tt class="code">',            "</tt>"),
    TagSpec("o",       '<span class="overline">',      "</span>"),
    TagSpec("s",       '<span class="strikethrough">', "</span>"),
    TagSpec("u",       '<span class="underline">',     "</span>"),
    TagSpec("expert",  '<span class="expert">',        "</span>"),
)


@lru_cache(maxsize=None)
def get_grammar(special: bool = False, moot_start: str = "", moot_end: str = "") -> Grammar:
    """
    Return the (immutable, shared) tag grammar.

    *special* adds the [moot] theme tag used on archived primary posts.
    """
    tags = {spec.name: spec for spec in _BASE_TAGS}
    if special:
        tags["moot"] = TagSpec("moot", moot_start, moot_end, not_allowed_within=frozenset())
    return Grammar(tags=MappingProxyType(tags))


# -----------------------------------------------------------------------------
# Parse tree
# -----------------------------------------------------------------------------

@dataclass(eq=False)
class Node:
    spec: Optional[TagSpec]
    children: list[Union["Node", str]] = field(default_factory=list)
    open_text: str = ""
    # content types of this node and every ancestor
    context: frozenset[str] = frozenset({BLOCK})

    @property
    def content_type(self) -> str:
        return BLOCK if self.spec is None else self.spec.content_type

    def open_child(self, spec: TagSpec, open_text: str) -> "Node":
        node = Node(spec=spec, open_text=open_text, context=self.context | {spec.content_type})
        self.children.append(node)
        return node


def _can_open(current: Node, spec: TagSpec) -> bool:
    if current.content_type not in spec.allowed_in:
        return False
    return not (current.context & spec.not_allowed_within)


def _flatten(unclosed: list[Node]) -> list[Union[Node, str]]:
    """
    Literal text for a chain of unclosed nodes, each the last child of the
    one before it.  Every child is moved exactly once.
    """
    out: list[Union[Node, str]] = []
    last = len(unclosed) - 1
    for i, node in enumerate(unclosed):
        out.append(node.open_text)
        out.extend(node.children if i == last else node.children[:-1])
    return out


class _OpenStack:
    """The chain of open nodes from the root down, with per-name positions."""

    def __init__(self, root: Node):
        self.nodes = [root]
        self._by_name: dict[str, list[int]] = {}
        self._code: list[int] = []

    @property
    def top(self) -> Node:
        return self.nodes[-1]

    def push(self, node: Node) -> None:
        assert node.spec is not None
        pos = len(self.nodes)
        self.nodes.append(node)
        self._by_name.setdefault(node.spec.name, []).append(pos)
        if node.content_type == CODE:
            self._code.append(pos)

    def find(self, name: str) -> Optional[int]:
        """Nearest open *name*; a closer never reaches past a code node."""
        positions = self._by_name.get(name)
        if not positions:
            return None
        pos = positions[-1]
        if self._code and self._code[-1] > pos:
            return None
        return pos

    def pop_to(self, pos: int) -> list[Node]:
        """Pop every node at *pos* and above; returns them root-side first."""
        popped = self.nodes[pos:]
        del self.nodes[pos:]
        for node in reversed(popped):
            assert node.spec is not None
            self._by_name[node.spec.name].pop()
            if node.content_type == CODE:
                self._code.pop()
        return popped


def parse(text: str, grammar: Grammar) -> Node:
    root = Node(spec=None)
    stack = _OpenStack(root)
    pos = 0

    for m in _TAG_RE.finditer(text):
        if m.start() > pos:
            stack.top.children.append(text[pos:m.start()])
        pos = m.end()

        is_closer = bool(m.group(1))
        spec = grammar.get(m.group(2))

        if spec is None:
            stack.top.children.append(m.group(0))
            continue

        if not is_closer:
            if _can_open(stack.top, spec):
                stack.push(stack.top.open_child(spec, m.group(0)))
            else:
                stack.top.children.append(m.group(0))
            continue

        target = stack.find(spec.name)
        if target is None:
            stack.top.children.append(m.group(0))
            continue

        closed = stack.pop_to(target)
        if len(closed) > 1:
            # nodes opened inside the target and never closed go back to text
            node = closed[0]
            del node.children[-1]
            node.children.extend(_flatten(closed[1:]))

    if pos < len(text):
        stack.top.children.append(text[pos:])

    if len(stack.nodes) > 1:
        unclosed = stack.pop_to(1)
        del root.children[-1]
        root.children.extend(_flatten(unclosed))

    return root


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------

def _wrap(spec: TagSpec, content: str, ancestors: int) -> str:
    if not content:
        return ""

    if spec.content_type == CODE:
        lines = [line for line in _LINE_SPLIT_RE.split(content) if line]
        if len(lines) > 1:
            return f"<pre>{content}</pre>"

    if spec.name in _SCRIPT_TAGS and ancestors > 1:
        return content
    if ancestors > MAX_ANCESTORS:
        return content

    return spec.start + content + spec.end


class _Frame:
    __slots__ = ("node", "parts", "index")

    def __init__(self, node: Node):
        self.node = node
        self.parts: list[str] = []
        self.index = 0


def render(root: Node) -> str:
    """Render a parse tree; the frame stack height is the ancestor count."""
    frames = [_Frame(root)]
    while True:
        frame = frames[-1]
        if frame.index < len(frame.node.children):
            child = frame.node.children[frame.index]
            frame.index += 1
            if isinstance(child, str):
                frame.parts.append(child)
            else:
                frames.append(_Frame(child))
            continue

        content = "".join(frame.parts)
        frames.pop()
        if not frames:
            return content
        assert frame.node.spec is not None
        frames[-1].parts.append(_wrap(frame.node.spec, content, ancestors=len(frames)))


def parse_bbcode(text: str, grammar: Optional[Grammar] = None) -> str:
    return render(parse(text, grammar or get_grammar()))


# -----------------------------------------------------------------------------
