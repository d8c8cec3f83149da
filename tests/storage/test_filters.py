"""Tests for filter value and order parsing."""

from contentstore.storage.filters import (
    Conjunction,
    Operator,
    OrderTerm,
    parse_filter,
    parse_order,
    parse_predicate,
    split_alternatives,
)


class TestOperatorParsing:
    def test_not_equal(self):
        predicate = parse_predicate("rating", "!5")
        assert predicate.operator == Operator.NE
        assert predicate.value == "5"

    def test_less_or_equal_date(self):
        predicate = parse_predicate("datepublish", "<=2020-01-01")
        assert predicate.operator == Operator.LE
        assert predicate.value == "2020-01-01"

    def test_comparisons(self):
        assert parse_predicate("rating", ">=10").operator == Operator.GE
        assert parse_predicate("rating", "<3").operator == Operator.LT
        assert parse_predicate("rating", ">3").operator == Operator.GT

    def test_pattern_match(self):
        assert parse_predicate("title", "%foo%").operator == Operator.LIKE
        assert parse_predicate("title", "foo%").operator == Operator.LIKE
        assert parse_predicate("title", "%foo%").value == "%foo%"

    def test_equality(self):
        predicate = parse_predicate("status", "published")
        assert predicate.operator == Operator.EQ
        assert predicate.value == "published"

    def test_non_string_is_equality(self):
        predicate = parse_predicate("id", 12)
        assert predicate.operator == Operator.EQ
        assert predicate.value == 12


class TestAlternatives:
    def test_or(self):
        assert split_alternatives("1 || 2") == (Conjunction.OR, ["1", "2"])

    def test_and(self):
        assert split_alternatives("1&&2 && 3") == (Conjunction.AND, ["1", "2", "3"])

    def test_single(self):
        assert split_alternatives("news") == (Conjunction.AND, ["news"])

    def test_group_parses_each_part(self):
        group = parse_filter("rating", ">2 && <5")
        assert group.conjunction == Conjunction.AND
        assert [p.operator for p in group.predicates] == [Operator.GT, Operator.LT]


class TestOrderParsing:
    allowed = {"id", "title", "datecreated"}

    def test_plain_and_descending(self):
        assert parse_order("title", self.allowed) == [OrderTerm("title")]
        assert parse_order("-datecreated", self.allowed) == [OrderTerm("datecreated", True)]

    def test_explicit_direction(self):
        assert parse_order("title DESC, id asc", self.allowed) == [
            OrderTerm("title", True),
            OrderTerm("id", False),
        ]

    def test_unknown_column_is_dropped(self):
        assert parse_order("password, title", self.allowed) == [OrderTerm("title")]

    def test_injection_is_dropped(self):
        assert parse_order("title; DROP TABLE cs_entries", self.allowed) == []
        assert parse_order("title DESC LIMIT 1", self.allowed) == []

    def test_bad_direction_is_dropped(self):
        assert parse_order("title SIDEWAYS", self.allowed) == []
