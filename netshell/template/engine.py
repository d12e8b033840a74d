"""Module engine: renders parsed templates against a variable snapshot."""
#
# PURPOSE:
# Evaluates interpolations and loops produced by TemplateParser.
#
# LOGIC:
# - Scope: a ChainMap whose innermost layer is the enclosing loop's binding,
#   falling through to the variable snapshot. Inner loops shadow outer ones.
# - Resolution: a missing top-level variable or nested key is a TemplateError.
# - Loops: the path must be an Array (or a String when `split` is given);
#   the body renders once per element and outputs concatenate in order.
# - Interpolation: scalars only; Array/Object must be narrowed by the path.
#

import functools
import logging
from collections import ChainMap
from typing import Any, List, Mapping, Sequence, Tuple

from netshell.errors import ErrorCode, TemplateError
from netshell.template.parser import Interpolation, Loop, Node, TemplateParser, Text
from netshell.variables.value import Value, ValueKind

logger = logging.getLogger(__name__)

Scope = Mapping[str, Value]


class Template:
    """A parsed template, reusable across renders."""

    def __init__(self, source: str, nodes: Tuple[Node, ...], preserve_loop_newlines: bool = True):
        self.source = source
        self.nodes = nodes
        self.preserve_loop_newlines = preserve_loop_newlines

    def render(self, variables: Mapping[str, Any]) -> str:
        """
        Render against a point-in-time mapping of variables.

        Args:
            variables: name -> Value (plain Python values are converted)

        Returns:
            The rendered text

        Raises:
            TemplateError: unresolved path, wrong value type for the context
        """
        scope = ChainMap({name: Value.of(value) for name, value in variables.items()})
        out: List[str] = []
        self._render_nodes(self.nodes, scope, out)
        return "".join(out)

    def _render_nodes(self, nodes: Sequence[Node], scope: ChainMap, out: List[str]) -> None:
        for node in nodes:
            if isinstance(node, Text):
                out.append(node.text)
            elif isinstance(node, Interpolation):
                value = _resolve(node.path, scope, node.line)
                try:
                    out.append(value.stringify())
                except TypeError:
                    raise TemplateError(
                        ErrorCode.TEMPLATE_TYPE,
                        f"'{node.dotted}' is {_article(value.kind)} {value.kind.value} and cannot be "
                        f"interpolated (line {node.line})",
                        details={"path": node.dotted, "kind": value.kind.value},
                    ) from None
            else:
                out.append(self._render_loop(node, scope))

    def _render_loop(self, loop: Loop, scope: ChainMap) -> str:
        collection = _resolve(loop.path, scope, loop.line)

        if loop.split is not None:
            if collection.kind is not ValueKind.STRING:
                raise TemplateError(
                    ErrorCode.TEMPLATE_TYPE,
                    f"Cannot split non-string variable '{loop.dotted}' (line {loop.line})",
                    details={"path": loop.dotted, "kind": collection.kind.value},
                )
            items = [Value.string(part) for part in collection.data.split(loop.split)]
        elif collection.kind is ValueKind.ARRAY:
            items = list(collection.data)
        else:
            raise TemplateError(
                ErrorCode.TEMPLATE_TYPE,
                f"'{loop.dotted}' is not an array (line {loop.line})",
                details={"path": loop.dotted, "kind": collection.kind.value},
            )

        result = ""
        for item in items:
            chunk: List[str] = []
            self._render_nodes(loop.body, scope.new_child({loop.target: item}), chunk)
            rendered = "".join(chunk)

            if not self.preserve_loop_newlines:
                # Drop whitespace-only lines, keep indentation of the rest
                lines = [line for line in rendered.splitlines() if line.strip()]
                if not lines:
                    continue
                rendered = "\n".join(lines)
                if result:
                    result += "\n"
            result += rendered
        return result


def _resolve(path: Tuple[str, ...], scope: Scope, line: int) -> Value:
    head = path[0]
    value = scope.get(head)
    if value is None:
        raise TemplateError(
            ErrorCode.TEMPLATE_UNRESOLVED,
            f"Variable '{head}' not found (line {line})",
            details={"path": ".".join(path), "line": line},
        )
    for depth, segment in enumerate(path[1:], start=1):
        child = value.child(segment)
        if child is None:
            parent = ".".join(path[:depth])
            raise TemplateError(
                ErrorCode.TEMPLATE_UNRESOLVED,
                f"Property '{segment}' not found in '{parent}' (line {line})",
                details={"path": ".".join(path), "line": line},
            )
        value = child
    return value


def _article(kind: ValueKind) -> str:
    return "an" if kind in (ValueKind.ARRAY, ValueKind.OBJECT) else "a"


class TemplateEngine:
    """
    Parses and renders templates.

    Parsed templates are cached by source text, so rendering the same step
    script for many targets or pipelines parses it once.
    """

    def __init__(
        self,
        var_open: str = "{{",
        var_close: str = "}}",
        preserve_loop_newlines: bool = True,
        cache_size: int = 256,
    ):
        self.parser = TemplateParser(var_open, var_close)
        self.preserve_loop_newlines = preserve_loop_newlines
        self._parse_cached = functools.lru_cache(maxsize=cache_size)(self._parse)

    def _parse(self, source: str) -> Template:
        return Template(source, self.parser.parse(source), self.preserve_loop_newlines)

    def parse(self, source: str) -> Template:
        return self._parse_cached(source)

    def render(self, source: str, variables: Mapping[str, Any]) -> str:
        return self.parse(source).render(variables)

    def render_mapping(self, values: Mapping[str, str], variables: Mapping[str, Any]) -> dict:
        """Render every string value of a mapping (step overrides, ssh fields)."""
        return {key: self.render(text, variables) for key, text in values.items()}
