"""
Template Parser (netshell/template/parser.py)

PURPOSE:
Parses script templates into a tree of nodes that the engine renders.

SYNTAX:
    literal text
    {{ dotted.path }}                              interpolation
    {% for item in dotted.path %} ... {% endfor %}  loop (nestable)
    {% for part in dotted.path split "," %} ... {% endfor %}

Interpolation delimiters are configurable; loop delimiters are always {% %}.
Path segments are identifiers or non-negative array indices ("hosts.0.ip").

Anything else between delimiters ("{{.Names}}", "{%Y}", "{% if x %}") and
any opener without a closer is kept as literal text. Only an unmatched
{% endfor %} and an unclosed {% for %} block are syntax errors.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from netshell.errors import ErrorCode, TemplateError

logger = logging.getLogger(__name__)

TAG_OPEN = "{%"
TAG_CLOSE = "%}"

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"
_PATH = rf"{_IDENT}(?:\.(?:{_IDENT}|\d+))*"

_PATH_RE = re.compile(_PATH)
_FOR_RE = re.compile(rf"for\s+({_IDENT})\s+in\s+({_PATH})(?:\s+split\s+\"([^\"]+)\")?")


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Interpolation:
    path: Tuple[str, ...]
    line: int = 1

    @property
    def dotted(self) -> str:
        return ".".join(self.path)


@dataclass(frozen=True)
class Loop:
    target: str
    path: Tuple[str, ...]
    body: Tuple["Node", ...]
    split: Optional[str] = None
    line: int = 1

    @property
    def dotted(self) -> str:
        return ".".join(self.path)


Node = Union[Text, Interpolation, Loop]


@dataclass
class _Frame:
    """An open {% for %} block collecting its body."""
    header: Optional[re.Match]
    line: int
    children: List[Node]


class TemplateParser:
    """Turns template source into a tuple of nodes."""

    def __init__(self, var_open: str = "{{", var_close: str = "}}"):
        if not var_open or not var_close:
            raise ValueError("Interpolation delimiters must be non-empty")
        if var_open == TAG_OPEN:
            raise ValueError(f"Interpolation delimiter cannot be the loop delimiter {TAG_OPEN!r}")
        self.var_open = var_open
        self.var_close = var_close

    def parse(self, source: str) -> Tuple[Node, ...]:
        stack: List[_Frame] = [_Frame(header=None, line=1, children=[])]
        pos = 0

        while pos < len(source):
            var_at = source.find(self.var_open, pos)
            tag_at = source.find(TAG_OPEN, pos)

            # Earliest opener wins; on a tie the loop tag is preferred.
            candidates = [(at, is_var) for at, is_var in ((tag_at, False), (var_at, True)) if at != -1]
            if not candidates:
                _append_text(stack[-1].children, source[pos:])
                break
            start, is_var = min(candidates, key=lambda c: (c[0], c[1]))

            if start > pos:
                _append_text(stack[-1].children, source[pos:start])

            opener, closer = (self.var_open, self.var_close) if is_var else (TAG_OPEN, TAG_CLOSE)
            line = source.count("\n", 0, start) + 1
            end = source.find(closer, start + len(opener))
            inner = source[start + len(opener):end].strip() if end != -1 else None

            if is_var and inner is not None and _PATH_RE.fullmatch(inner):
                stack[-1].children.append(Interpolation(path=tuple(inner.split(".")), line=line))
            elif not is_var and inner is not None and (inner == "endfor" or _FOR_RE.fullmatch(inner)):
                self._tag(inner, line, stack)
            else:
                # Not ours ("{{.Names}}", "{%Y}"): the opener is literal, rescan after it
                logger.debug(f"[TemplateParser] literal '{opener}' at line {line}")
                _append_text(stack[-1].children, opener)
                pos = start + len(opener)
                continue
            pos = end + len(closer)

        if len(stack) > 1:
            raise TemplateError(
                ErrorCode.TEMPLATE_SYNTAX,
                f"Unclosed '{{% for %}}' block opened at line {stack[-1].line}",
                details={"line": stack[-1].line},
            )
        return tuple(stack[0].children)

    @staticmethod
    def _tag(inner: str, line: int, stack: List[_Frame]) -> None:
        if inner == "endfor":
            if len(stack) == 1:
                raise TemplateError(
                    ErrorCode.TEMPLATE_SYNTAX,
                    f"'{{% endfor %}}' without matching '{{% for %}}' at line {line}",
                    details={"line": line},
                )
            frame = stack.pop()
            target, path, split = frame.header.groups()
            stack[-1].children.append(Loop(
                target=target,
                path=tuple(path.split(".")),
                body=tuple(frame.children),
                split=split,
                line=frame.line,
            ))
            return
        stack.append(_Frame(header=_FOR_RE.fullmatch(inner), line=line, children=[]))


def _append_text(children: List[Node], text: str) -> None:
    if children and isinstance(children[-1], Text):
        children[-1] = Text(children[-1].text + text)
    else:
        children.append(Text(text))
