"""
Tests for host pattern matching.

Tests cover:
- * and ? wildcards
- Character classes
- Malformed patterns never matching
- Matching against several patterns
"""
from __future__ import annotations

import pytest

from ssh_profile.patterns import matches, matches_any


class TestMatches:
    """Test single-pattern matching."""

    def test_star_matches_everything(self) -> None:
        """* matches any alias, including the empty one."""
        assert matches("example", "*")
        assert matches("a.b.c", "*")
        assert matches("", "*")

    def test_question_mark_matches_one_char(self) -> None:
        """? matches exactly one character."""
        assert matches("web1", "web?")
        assert not matches("webapp", "web?")
        assert not matches("web", "web?")

    def test_literal_pattern(self) -> None:
        """Patterns without wildcards match only the same alias."""
        assert matches("example", "example")
        assert not matches("example.com", "example")

    def test_suffix_wildcard(self) -> None:
        """* can appear inside a pattern."""
        assert matches("db.example.com", "*.example.com")
        assert not matches("example.com", "*.example.com")

    def test_case_sensitive(self) -> None:
        """Matching is case-sensitive."""
        assert not matches("Example", "example")

    def test_character_class(self) -> None:
        """[seq] and [!seq] classes are supported."""
        assert matches("web1", "web[0-9]")
        assert not matches("webx", "web[0-9]")
        assert matches("webx", "web[!0-9]")

    def test_regex_metacharacters_are_literal(self) -> None:
        """Characters special to regexes are matched literally."""
        assert matches("a+b", "a+b")
        assert not matches("aab", "a+b")
        assert matches("host.x", "host.x")
        assert not matches("hostyx", "host.x")

    def test_caret_negates_class(self) -> None:
        """[^seq] is the same as [!seq]."""
        assert matches("b", "[^a]")
        assert not matches("a", "[^a]")

    def test_literal_bracket_first_in_class(self) -> None:
        """A ] right after [ is a class member."""
        assert matches("]", "[]a]")
        assert matches("a", "[]a]")

    def test_dash_at_class_end_is_literal(self) -> None:
        """A trailing - in a class is a literal dash."""
        assert matches("-", "[a-]")
        assert not matches("b", "[a-]")

    def test_brace_alternation(self) -> None:
        """{a,b} matches either alternative."""
        assert matches("web", "{web,db}")
        assert matches("db", "{web,db}")
        assert not matches("app", "{web,db}")
        assert matches("db1.example", "{web,db}?.example")

    def test_empty_alternative(self) -> None:
        """An empty alternative matches nothing extra."""
        assert matches("web", "web{,-1}")
        assert matches("web-1", "web{,-1}")

    def test_comma_outside_braces_is_literal(self) -> None:
        """Commas only separate alternatives inside braces."""
        assert matches("a,b", "a,b")

    def test_backslash_escape(self) -> None:
        """A backslash makes the next character literal."""
        assert matches("*", "\\*")
        assert not matches("x", "\\*")
        assert matches("a?", "a\\?")
        assert not matches("ab", "a\\?")

    @pytest.mark.parametrize(
        "pattern",
        ["web[", "[abc", "a[!", "x[]", "[z-a]", "{a", "a}", "{a,{b}}", "web\\"],
    )
    def test_malformed_pattern_never_matches(self, pattern: str) -> None:
        """Patterns that fail to compile never match, even literally."""
        assert not matches(pattern, pattern)
        assert not matches("web", pattern)
        assert not matches("a", pattern)
        assert not matches("z", pattern)


class TestMatchesAny:
    """Test matching against the patterns of one Host line."""

    def test_any_pattern_matches(self) -> None:
        """A Host line matches if any of its patterns does."""
        assert matches_any("staging", ["prod", "staging"])
        assert matches_any("web2", ["db?", "web?"])

    def test_no_pattern_matches(self) -> None:
        """A Host line does not match if none of its patterns does."""
        assert not matches_any("other", ["prod", "staging"])

    def test_empty_patterns(self) -> None:
        """No patterns means no match."""
        assert not matches_any("anything", [])

    def test_malformed_pattern_does_not_block_others(self) -> None:
        """A malformed pattern is skipped, not fatal."""
        assert matches_any("web1", ["web[", "web?"])
