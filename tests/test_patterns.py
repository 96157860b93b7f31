"""Tests for exports/requires rule parsing and matching."""

import pytest

from errors import InvalidPatternError
from modules.descriptor import ExportsDirective, RequiresDirective
from modules.patterns import match_exports, match_requires, parse_export_rules, parse_require_rules


class TestParseExportRules:
    """Test exports rule syntax."""

    def test_semicolon_separated_string(self):
        """Rules may be given as one ';'-separated string."""
        rules = parse_export_rules(" com.foo.* ;\n !com.foo.internal ; ")
        assert [(r.expression, r.inclusive) for r in rules] == [
            ("com.foo.*", True),
            ("com.foo.internal", False),
        ]

    def test_list_form_with_targets(self):
        """A rule can qualify its export with target modules."""
        rules = parse_export_rules(["com.foo.spi to mod.x, mod.y", "com.foo.api"])
        assert rules[0].targets == ("mod.x", "mod.y")
        assert rules[1].targets == ()

    def test_none_means_no_rules(self):
        assert parse_export_rules(None) == []

    @pytest.mark.parametrize("rule", [
        "com..foo",
        "com.foo-bar",
        "!com.foo to mod.x",
        "com.foo to not-a-module",
    ])
    def test_invalid_rules(self, rule):
        """Malformed rules raise InvalidPatternError."""
        with pytest.raises(InvalidPatternError):
            parse_export_rules(rule)


class TestParseRequireRules:
    """Test requires rule syntax."""

    def test_modifiers(self):
        rules = parse_require_rules("static transitive com.bar; transitive com.baz.*; !com.qux")
        assert rules[0].modifiers == frozenset({"static", "transitive"})
        assert rules[1].modifiers == frozenset({"transitive"})
        assert not rules[2].inclusive

    def test_unknown_modifier(self):
        with pytest.raises(InvalidPatternError):
            parse_require_rules("optional com.bar")

    def test_negative_rule_with_modifier(self):
        with pytest.raises(InvalidPatternError):
            parse_require_rules("!static com.bar")


class TestMatchExports:
    """Test ordered, wildcard-aware export selection."""

    def test_exclusion_after_wildcard(self):
        """The later exclusion removes the package the wildcard admitted."""
        rules = parse_export_rules(["com.foo.*", "!com.foo.internal"])
        exports = match_exports({"com.foo.api", "com.foo.internal", "com.bar"}, rules)
        assert exports == (ExportsDirective("com.foo.api"),)

    def test_closed_by_default(self):
        """Without rules nothing is exported."""
        assert match_exports({"com.foo.api"}, []) == ()

    def test_first_positive_match_fixes_targets(self):
        """A narrower rule declared later doesn't override the first match."""
        rules = parse_export_rules(["com.foo.*", "com.foo.spi to mod.x"])
        exports = match_exports({"com.foo.spi"}, rules)
        assert exports == (ExportsDirective("com.foo.spi"),)

    def test_narrow_rule_first_wins(self):
        rules = parse_export_rules(["com.foo.spi to mod.x", "com.foo.*"])
        exports = match_exports({"com.foo.spi", "com.foo.api"}, rules)
        assert exports == (
            ExportsDirective("com.foo.api"),
            ExportsDirective("com.foo.spi", ("mod.x",)),
        )

    def test_exclusion_is_final(self):
        """An excluded package stays excluded even if a later rule matches it."""
        rules = parse_export_rules(["!com.foo.internal", "com.foo.*"])
        assert match_exports({"com.foo.internal"}, rules) == ()

    def test_wildcard_spans_segments(self):
        rules = parse_export_rules("com.*")
        assert len(match_exports({"com.a.b.c", "com", "org.a"}, rules)) == 1


class TestMatchRequires:
    """Test requires selection and modifiers."""

    def test_open_by_default(self):
        """Modules no rule mentions are required plainly."""
        requires = match_requires({"mod.b", "mod.c"}, [])
        assert requires == (RequiresDirective("mod.b"), RequiresDirective("mod.c"))

    def test_optional_dependencies_are_static(self):
        requires = match_requires({"mod.b", "mod.d"}, [], optional_modules={"mod.d"})
        assert requires == (RequiresDirective("mod.b"), RequiresDirective("mod.d", static=True))

    def test_exclusion_and_modifiers(self):
        rules = parse_require_rules("transitive mod.api.*; !mod.internal")
        requires = match_requires({"mod.api.core", "mod.internal", "mod.other"}, rules)
        assert requires == (
            RequiresDirective("mod.api.core", transitive=True),
            RequiresDirective("mod.other"),
        )

    def test_static_rule_on_required_dependency(self):
        rules = parse_require_rules("static mod.b")
        assert match_requires({"mod.b"}, rules) == (RequiresDirective("mod.b", static=True),)
