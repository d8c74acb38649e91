"""Per-line transforms: filter, replace, split and extract.

Every method is a pure function of the compiled :class:`RuleSet` and its
argument, except :meth:`LineTransformer.extract`, which rewrites the row it
is given in place.  A transformer holds no mutable state and may be shared
between threads.

Typical use, in pipeline order::

    t = LineTransformer(ruleset)
    if not t.filter(line):
        fields, mismatch = t.split(t.replace(line))
        values, errors = t.extract(fields)
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..errors import FieldCountMismatch, SubmatchIndexError
from ..rules.ruleset import RuleSet
from ..rules.templates import iter_matches, substitute


@dataclass
class ExtractionResult:
    """Extracted values in rule × column × match order, plus non-fatal errors."""

    values: list[str] = field(default_factory=list)
    errors: list[SubmatchIndexError] = field(default_factory=list)

    def __iter__(self):
        # Allows ``values, errors = transformer.extract(row)``
        yield self.values
        yield self.errors


class LineTransformer:
    """Apply a RuleSet's line-level rules."""

    def __init__(self, ruleset: RuleSet) -> None:
        self._rules = ruleset

    @property
    def ruleset(self) -> RuleSet:
        return self._rules

    def filter(self, line: str) -> bool:
        """Return True when the line should be dropped.

        The negative filter is evaluated first and wins: a line matching both
        filters is dropped.
        """
        negative = self._rules.negative_filter
        if negative is not None and negative.search(line):
            return True
        positive = self._rules.positive_filter
        if positive is not None and not positive.search(line):
            return True
        return False

    def replace(self, line: str) -> str:
        """Apply every replacement in declaration order.

        Each rule sees the output of the previous one, so the order of rules
        in the document is significant.
        """
        for rule in self._rules.replacements:
            line = rule.apply(line)
        return line

    def split(self, line: str) -> tuple[list[str], FieldCountMismatch | None]:
        """Split on the input delimiter.

        The fields are always returned; a :class:`FieldCountMismatch` is
        returned next to them when an expected count is configured and not
        met.
        """
        fields = split_line(self._rules.input_delimiter, line)
        expected = self._rules.expected_field_count
        if expected and len(fields) != expected:
            return fields, FieldCountMismatch(expected, len(fields))
        return fields, None

    def extract(self, fields: list[str]) -> ExtractionResult:
        """Pull sub-values out of fields and leave the rule's token behind.

        Output order is rule order, then the rule's column order, then match
        order within the field, not the position of the text in the line.
        Empty matches directly after another match are ignored.
        ``fields`` is modified in place.
        """
        result = ExtractionResult()
        for rule in self._rules.extracts:
            for column in rule.columns:
                if column >= len(fields):
                    continue
                value = fields[column]
                for match in iter_matches(rule.pattern, value):
                    if rule.submatch > rule.pattern.groups:
                        groups = (match.group(0),) + tuple(g or "" for g in match.groups())
                        result.errors.append(
                            SubmatchIndexError(rule.submatch, groups, rule.pattern.pattern)
                        )
                        continue
                    result.values.append(match.group(rule.submatch) or "")
                fields[column] = substitute(rule.pattern, rule.token, value)
        return result


def split_line(delimiter: re.Pattern[str], line: str) -> list[str]:
    """Split ``line`` on every match of ``delimiter``.

    Unlike :func:`re.split`, capture groups in the delimiter are not
    returned and an empty match at the very start of the line does not
    produce a leading empty field.  Empty matches directly after another
    match are ignored.
    """
    if not line:
        return [""]
    fields: list[str] = []
    begin = 0
    end = 0
    for match in iter_matches(delimiter, line):
        end = match.start()
        if match.end() != 0:
            fields.append(line[begin:end])
        begin = match.end()
    if end != len(line):
        fields.append(line[begin:])
    return fields
