"""Replacement templates with ``$1`` / ``${name}`` group references.

Rule documents write templates in the dollar syntax rule files use, e.g.
``"${1}{}"`` or ``"  ${1}  "``.  The syntax is:

* ``$name`` or ``${name}``: a group by number or by name.  In the unbraced
  form the name is the longest run of letters, digits and ``_``, so ``$1x``
  refers to a group called ``1x``.
* ``$$``: a literal ``$``.
* any other ``$``: kept literally.

A reference to a group that does not exist, or did not take part in the
match, expands to the empty string.
"""
from __future__ import annotations

import re
from typing import Callable, Iterator, Union

_NAME_RE = re.compile(r"[A-Za-z0-9_]+")

# A part is literal text (str) or a group reference (int index or str name)
_Part = Union[str, "_GroupRef"]


class _GroupRef:
    __slots__ = ("key",)

    def __init__(self, key: int | str) -> None:
        self.key = key

    def __repr__(self) -> str:
        return f"_GroupRef({self.key!r})"


def _parse(template: str) -> list[_Part]:
    parts: list[_Part] = []
    literal: list[str] = []
    i = 0
    n = len(template)
    while i < n:
        ch = template[i]
        if ch != "$" or i + 1 >= n:
            literal.append(ch)
            i += 1
            continue

        nxt = template[i + 1]
        if nxt == "$":
            literal.append("$")
            i += 2
            continue

        if nxt == "{":
            close = template.find("}", i + 2)
            name = template[i + 2:close] if close != -1 else ""
            if not name or not _NAME_RE.fullmatch(name):
                literal.append(ch)
                i += 1
                continue
            end = close + 1
        else:
            m = _NAME_RE.match(template, i + 1)
            if m is None:
                literal.append(ch)
                i += 1
                continue
            name = m.group(0)
            end = m.end()

        if literal:
            parts.append("".join(literal))
            literal = []
        parts.append(_GroupRef(int(name) if name.isdigit() else name))
        i = end

    if literal:
        parts.append("".join(literal))
    return parts


class Template:
    """A parsed replacement template, usable as an ``re.sub`` callable.

    Usage::

        tpl = Template("${1}{}")
        re.sub(r"(^|\\s+)(\\d+)", tpl, "took 12 ms")   # 'took {} ms'
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self._parts = _parse(source)
        self._literal = all(isinstance(p, str) for p in self._parts)
        self._text = "".join(p for p in self._parts if isinstance(p, str))

    def expand(self, match: re.Match[str]) -> str:
        if self._literal:
            return self._text
        out: list[str] = []
        groupindex = match.re.groupindex
        ngroups = match.re.groups
        for part in self._parts:
            if isinstance(part, str):
                out.append(part)
                continue
            key = part.key
            if isinstance(key, str):
                if key not in groupindex:
                    continue
                key = groupindex[key]
            if key > ngroups:
                continue
            out.append(match.group(key) or "")
        return "".join(out)

    __call__ = expand

    def __repr__(self) -> str:
        return f"Template({self.source!r})"


def iter_matches(pattern: re.Pattern[str], text: str) -> Iterator[re.Match[str]]:
    """Like ``pattern.finditer(text)``, minus empty matches abutting the previous match.

    ``re`` reports an empty match directly after a non-empty one (``\\d*`` on
    ``"a1b"`` matches ``""``, ``"1"`` and then ``""`` again at offset 2); rule
    files expect that last one to be ignored.
    """
    prev_end = -1
    for match in pattern.finditer(text):
        if match.start() == match.end() == prev_end:
            continue
        prev_end = match.end()
        yield match


def substitute(
    pattern: re.Pattern[str], repl: Callable[[re.Match[str]], str], text: str
) -> str:
    """``pattern.sub(repl, text)`` over :func:`iter_matches`."""
    out: list[str] = []
    last = 0
    for match in iter_matches(pattern, text):
        out.append(text[last:match.start()])
        out.append(repl(match))
        last = match.end()
    out.append(text[last:])
    return "".join(out)
