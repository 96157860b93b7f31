"""Exports and requires rules, and their reduction to descriptor directives.

Rules are applied in declaration order:

* a negative rule (``!pattern``) removes every candidate it matches, and an
  excluded candidate stays excluded;
* the first positive rule matching a candidate admits it and fixes its
  qualification (export targets, requires modifiers). A narrower positive
  rule declared later does not override it.

Candidates no rule admits follow the default policy: packages are not
exported, dependencies are required.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Collection, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from errors import InvalidPatternError
from modules.descriptor import ExportsDirective, RequiresDirective

logger = logging.getLogger(__name__)

RuleSpec = Union[None, str, Sequence[str]]

_NAME_GLOB_RE = re.compile(r"^[A-Za-z_$*][\w$*]*(\.[A-Za-z_$*][\w$*]*)*$")
_MODULE_NAME_RE = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")
_EXPORT_RULE_RE = re.compile(r"^(?P<neg>!)?\s*(?P<pattern>\S+)(?:\s+to\s+(?P<targets>.+))?$")
_REQUIRES_MODIFIERS = ("static", "transitive")


@dataclass(frozen=True)
class PatternRule:
    """One ordered rule: a name glob, an include/exclude flag and its qualification."""

    expression: str
    inclusive: bool = True
    targets: Tuple[str, ...] = ()
    modifiers: FrozenSet[str] = frozenset()
    regex: re.Pattern = field(default=None, compare=False, repr=False)  # type: ignore[assignment]

    def __post_init__(self):
        if self.regex is None:
            object.__setattr__(self, "regex", _glob_to_regex(self.expression))

    def matches(self, name: str) -> bool:
        return self.regex.fullmatch(name) is not None


def _glob_to_regex(expression: str) -> re.Pattern:
    return re.compile("".join(".*" if ch == "*" else re.escape(ch) for ch in expression))


def _split_rules(spec: RuleSpec) -> List[str]:
    if spec is None:
        return []
    items = spec.split(";") if isinstance(spec, str) else list(spec)
    result = []
    for item in items:
        if not isinstance(item, str):
            raise InvalidPatternError(f"Rule {item!r} is not a string")
        item = item.strip()
        if item:
            result.append(item)
    return result


def _check_glob(expression: str, rule: str) -> None:
    if not _NAME_GLOB_RE.match(expression):
        raise InvalidPatternError(f"Invalid name pattern '{expression}' in rule '{rule}'")


def parse_export_rules(spec: RuleSpec) -> List[PatternRule]:
    """Parse ``[!]<package-glob>[ to <module>, ...]`` rules.

    Raises:
        InvalidPatternError: on malformed rules or a qualified negative rule.
    """
    rules = []
    for item in _split_rules(spec):
        m = _EXPORT_RULE_RE.match(item)
        if not m:
            raise InvalidPatternError(f"Invalid exports rule '{item}'")
        pattern = m.group("pattern")
        _check_glob(pattern, item)
        targets: Tuple[str, ...] = ()
        if m.group("targets") is not None:
            if m.group("neg"):
                raise InvalidPatternError(f"Excluding rule '{item}' cannot name target modules")
            targets = tuple(t.strip() for t in m.group("targets").split(","))
            for target in targets:
                if not _MODULE_NAME_RE.match(target):
                    raise InvalidPatternError(f"Invalid target module '{target}' in rule '{item}'")
        rules.append(PatternRule(pattern, inclusive=not m.group("neg"), targets=targets))
    return rules


def parse_require_rules(spec: RuleSpec) -> List[PatternRule]:
    """Parse ``[!][static ][transitive ]<module-glob>`` rules.

    Raises:
        InvalidPatternError: on malformed rules or a negative rule with modifiers.
    """
    rules = []
    for item in _split_rules(spec):
        negated = item.startswith("!")
        tokens = item[1:].split() if negated else item.split()
        if not tokens:
            raise InvalidPatternError(f"Invalid requires rule '{item}'")
        *modifiers, pattern = tokens
        for modifier in modifiers:
            if modifier not in _REQUIRES_MODIFIERS:
                raise InvalidPatternError(f"Unknown modifier '{modifier}' in requires rule '{item}'")
        if negated and modifiers:
            raise InvalidPatternError(f"Excluding rule '{item}' cannot carry modifiers")
        _check_glob(pattern, item)
        rules.append(PatternRule(pattern, inclusive=not negated, modifiers=frozenset(modifiers)))
    return rules


def _first_decision(name: str, rules: Iterable[PatternRule]) -> Tuple[bool, Optional[PatternRule]]:
    """Return (excluded, first admitting rule) for ``name``."""
    admitted = None
    for rule in rules:
        if not rule.matches(name):
            continue
        if not rule.inclusive:
            return True, None
        if admitted is None:
            admitted = rule
    return False, admitted


def match_exports(candidate_packages: Iterable[str], rules: Sequence[PatternRule]) -> Tuple[ExportsDirective, ...]:
    """Select the exported packages among ``candidate_packages``; closed by default."""
    result = []
    for package in sorted(set(candidate_packages)):
        excluded, rule = _first_decision(package, rules)
        if excluded or rule is None:
            continue
        result.append(ExportsDirective(package, rule.targets))
    return tuple(result)


def match_requires(
    candidate_modules: Iterable[str],
    rules: Sequence[PatternRule],
    optional_modules: Collection[str] = (),
) -> Tuple[RequiresDirective, ...]:
    """Select the required modules among ``candidate_modules``; open by default.

    Modules in ``optional_modules`` are always required ``static``.
    """
    result = []
    for name in sorted(set(candidate_modules)):
        excluded, rule = _first_decision(name, rules)
        if excluded:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Dropping requires %s excluded by rule", name)
            continue
        modifiers = rule.modifiers if rule is not None else frozenset()
        result.append(
            RequiresDirective(
                name,
                transitive="transitive" in modifiers,
                static="static" in modifiers or name in optional_modules,
            )
        )
    return tuple(result)
