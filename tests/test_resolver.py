"""
Tests for section and step lookup.
"""

from flow_assist.core.resolver import EntityResolver, MatchStrategy
from flow_assist.core.types import FlowDocument


class TestSectionResolution:
    """Sections match by case-insensitive exact title."""

    def test_case_insensitive(self, sample_flow: FlowDocument):
        resolver = EntityResolver(sample_flow)
        assert resolver.resolve_section("  cleaning ").title == "Cleaning"

    def test_partial_title_does_not_match(self, sample_flow: FlowDocument):
        assert EntityResolver(sample_flow).resolve_section("Clean") is None

    def test_default_is_first_section(self, sample_flow: FlowDocument):
        resolver = EntityResolver(sample_flow)
        assert resolver.resolve_section().title == "Preparation"
        assert resolver.resolve_section("   ").title == "Preparation"

    def test_duplicate_titles_resolve_to_first(self, sample_flow: FlowDocument):
        first = sample_flow.sorted_sections()[1]
        sample_flow.add_section("Cleaning")
        assert EntityResolver(sample_flow).resolve_section("cleaning").id == first.id

    def test_empty_flow(self):
        assert EntityResolver(FlowDocument()).resolve_section() is None


class TestStepResolution:
    """Contains vs. exact matching, scoping and first-match order."""

    def test_contains_first_match_wins(self, sample_flow: FlowDocument):
        step = EntityResolver(sample_flow).resolve_step("the", MatchStrategy.CONTAINS)
        assert step.description == "Wipe the counter"

    def test_exact_requires_whole_description(self, sample_flow: FlowDocument):
        resolver = EntityResolver(sample_flow)
        assert resolver.resolve_step_by_exact("Wash") is None
        assert resolver.resolve_step_by_exact("WASH HANDS").description == "Wash hands"

    def test_contains_scoped_to_section(self, sample_flow: FlowDocument):
        resolver = EntityResolver(sample_flow)
        assert resolver.resolve_step_by_contains("gloves", "Cleaning") is None
        assert resolver.resolve_step_by_contains("gloves", "Preparation").description == "Put on gloves"

    def test_unknown_scope_section(self, sample_flow: FlowDocument):
        assert EntityResolver(sample_flow).resolve_step_by_contains("hands", "Missing") is None

    def test_blank_query(self, sample_flow: FlowDocument):
        assert EntityResolver(sample_flow).resolve_step("  ", MatchStrategy.CONTAINS) is None


class TestSuggestions:
    """Fuzzy suggestions for failed lookups."""

    def test_suggest_step(self, sample_flow: FlowDocument):
        assert EntityResolver(sample_flow).suggest_step("Wipe counter") == "Wipe the counter"

    def test_suggest_section(self, sample_flow: FlowDocument):
        assert EntityResolver(sample_flow).suggest_section("Preperation") == "Preparation"

    def test_no_suggestion_for_unrelated_text(self, sample_flow: FlowDocument):
        assert EntityResolver(sample_flow).suggest_section("xyz") is None
