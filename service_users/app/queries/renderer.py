"""
Template rendering and positional parameter binding.

Rendering is two passes over a named template:

1. Directives. ``{{if key}} ... {{else}} ... {{end}}`` keeps or drops a
   fragment depending on the truthiness of ``key`` in the data, and
   ``{{key}}`` inserts the value verbatim. Verbatim values bypass binding,
   so callers only feed them identifiers they have already whitelisted.
2. Binding. Every ``$key`` whose ``key`` is present in the data is rewritten
   to ``$1``, ``$2``, ... in order of first appearance. All occurrences of one
   key share one marker and one argument. Keys the statement never mentions
   are not passed to the driver.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

from shared.logging import get_logger
from shared.errors import TemplateNotFoundError, QueryBuildError
from .template_store import QueryLoader


_DIRECTIVE_RE = re.compile(r"\{\{\s*(.*?)\s*\}\}", re.DOTALL)
_PLACEHOLDER_RE = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_MISSING = object()


@dataclass
class _Value:
    key: str


@dataclass
class _Conditional:
    key: str
    then_nodes: List[Any] = field(default_factory=list)
    else_nodes: List[Any] = field(default_factory=list)


_Node = Union[str, _Value, _Conditional]


def _parse(name: str, template: str) -> List[_Node]:
    root: List[_Node] = []
    # Each frame is (open conditional or None, list receiving nodes)
    stack: List[Tuple[Any, List[_Node]]] = [(None, root)]
    pos = 0

    for match in _DIRECTIVE_RE.finditer(template):
        if match.start() > pos:
            stack[-1][1].append(template[pos:match.start()])
        pos = match.end()

        directive = match.group(1)
        if directive.startswith("if ") or directive.startswith("if\t"):
            key = directive[2:].strip()
            if not _IDENTIFIER_RE.match(key):
                raise QueryBuildError(f"template {name}: invalid condition {directive!r}", {"template": name})
            node = _Conditional(key)
            stack[-1][1].append(node)
            stack.append((node, node.then_nodes))
        elif directive == "else":
            node, nodes = stack[-1]
            if node is None or nodes is node.else_nodes:
                raise QueryBuildError(f"template {name}: unexpected {{{{else}}}}", {"template": name})
            stack[-1] = (node, node.else_nodes)
        elif directive == "end":
            if len(stack) == 1:
                raise QueryBuildError(f"template {name}: unexpected {{{{end}}}}", {"template": name})
            stack.pop()
        elif _IDENTIFIER_RE.match(directive):
            stack[-1][1].append(_Value(directive))
        else:
            raise QueryBuildError(f"template {name}: unknown directive {directive!r}", {"template": name})

    if len(stack) > 1:
        raise QueryBuildError(f"template {name}: unclosed {{{{if {stack[-1][0].key}}}}}", {"template": name})

    if pos < len(template):
        root.append(template[pos:])

    return root


def _lookup(data: Any, key: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(key, _MISSING)
    return getattr(data, key, _MISSING)


def _execute(name: str, nodes: List[_Node], data: Any, out: List[str]) -> None:
    for node in nodes:
        if isinstance(node, str):
            out.append(node)
        elif isinstance(node, _Value):
            value = _lookup(data, node.key)
            if value is _MISSING:
                raise QueryBuildError(
                    f"template {name}: no value for {{{{{node.key}}}}}",
                    {"template": name, "key": node.key}
                )
            out.append(str(value))
        else:
            value = _lookup(data, node.key)
            branch = node.then_nodes if value is not _MISSING and value else node.else_nodes
            _execute(name, branch, data, out)


def bind_positional(query: str, data: Any) -> Tuple[str, List[Any]]:
    """Rewrite ``$key`` placeholders to ordered ``$n`` markers.

    Non-mapping data is returned untouched with no arguments.
    """
    args: List[Any] = []
    if not isinstance(data, Mapping):
        return query, args

    positions: Dict[str, int] = {}

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key not in data:
            return match.group(0)
        if key not in positions:
            args.append(data[key])
            positions[key] = len(args)
        return f"${positions[key]}"

    return _PLACEHOLDER_RE.sub(_replace, query), args


class QueryRenderer:
    """Renders named templates into driver-ready statements."""

    def __init__(self, loader: QueryLoader):
        self.loader = loader
        self.logger = get_logger("users.queries.renderer")
        self._parsed: Dict[str, List[_Node]] = {}

    def render(self, name: str, data: Any = None) -> Tuple[str, List[Any]]:
        """Render template ``name`` against ``data``.

        Returns the SQL text and the positional argument list. Raises
        TemplateNotFoundError for unknown names and QueryBuildError when the
        directives cannot be evaluated.
        """
        template, found = self.loader.get(name)
        if not found:
            raise TemplateNotFoundError(name)

        nodes = self._parsed.get(name)
        if nodes is None:
            nodes = _parse(name, template)
            self._parsed[name] = nodes

        out: List[str] = []
        _execute(name, nodes, data, out)
        query, args = bind_positional("".join(out), data)

        self.logger.debug("Rendered query", template=name, args=len(args))
        return query, args
