"""
Tests for the sync query template.
"""

from __future__ import annotations

import pytest

from councilsearch.config.errors import ConfigurationError, ErrorCode, InputError

from .models import BuiltQuery
from .template import SYNC_QUERY_TEMPLATE, SyncQueryTemplate, quote_literal


@pytest.fixture
def template() -> SyncQueryTemplate:
    return SyncQueryTemplate()


# --- build / materialize ---


def test_build_uses_positional_markers(template: SyncQueryTemplate) -> None:
    """Test scope IDs become parameters, never SQL text."""
    built = template.build(["chania", "athens"])
    assert built.params == ["athens", "chania"]
    assert 'WHERE m."cityId" IN ($1, $2)' in built.query
    assert "athens" not in built.query
    assert "{{CITY_IDS}}" not in built.query


def test_build_deduplicates(template: SyncQueryTemplate) -> None:
    built = template.build(["athens", "athens", "chania"])
    assert built.params == ["athens", "chania"]


def test_build_rejects_empty_scope(template: SyncQueryTemplate) -> None:
    with pytest.raises(InputError) as exc_info:
        template.build([])
    assert exc_info.value.code == ErrorCode.SYNC_SCOPE_EMPTY


@pytest.mark.parametrize("city_id", ["athens,chania", "athens)", "x) OR (1=1"])
def test_build_rejects_ids_that_break_extraction(
    template: SyncQueryTemplate, city_id: str
) -> None:
    """Test IDs that would not survive render then extract are refused up front."""
    with pytest.raises(InputError) as exc_info:
        template.build(["chania", city_id])
    assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
    assert exc_info.value.details == {"invalid_scope_ids": [city_id]}


def test_materialize_quotes_values(template: SyncQueryTemplate) -> None:
    built = template.build(["athens", "chania"])
    sql = template.materialize(built.query, built.params)
    assert "IN ('athens', 'chania')" in sql
    assert "$1" not in sql


def test_materialize_doubles_embedded_quotes(template: SyncQueryTemplate) -> None:
    """Test a quote inside a value is doubled and the literal stays balanced."""
    built = template.build(["agios'nikolaos"])
    sql = template.materialize(built.query, built.params)
    assert "IN ('agios''nikolaos')" in sql


def test_materialize_does_not_rescan_substituted_values(template: SyncQueryTemplate) -> None:
    sql = template.materialize("SELECT $1, $2", ["$2", "b"])
    assert sql == "SELECT '$2', 'b'"


def test_materialize_rejects_missing_parameter(template: SyncQueryTemplate) -> None:
    with pytest.raises(InputError):
        template.materialize("SELECT $1, $2", ["a"])


def test_quote_literal() -> None:
    assert quote_literal("o'neil") == "'o''neil'"


# --- extract_scope_ids ---


@pytest.mark.parametrize(
    "scope",
    [
        ["athens"],
        ["athens", "chania", "zografou"],
        ["chania", "athens"],
        ["agios'nikolaos", "athens"],
    ],
)
def test_scope_ids_round_trip(template: SyncQueryTemplate, scope: list[str]) -> None:
    """Test extracting from a rendered query returns the sorted scope."""
    assert template.extract_scope_ids(template.render(scope)) == sorted(scope)


def test_extract_scope_ids_tolerates_formatting(template: SyncQueryTemplate) -> None:
    query = 'SELECT 1 FROM x m WHERE   m."cityId"  IN (  \'athens\' ,"chania"  ) AND true'
    assert template.extract_scope_ids(query) == ["athens", "chania"]


def test_extract_scope_ids_unscoped_query(template: SyncQueryTemplate) -> None:
    """Test a query without a membership test yields an empty list."""
    assert template.extract_scope_ids('SELECT * FROM "Subject"') == []


# --- structure ---


def test_structure_is_scope_invariant(template: SyncQueryTemplate) -> None:
    a = template.render(["athens"])
    b = template.render(["chania", "zografou"])
    assert template.same_structure(a, b)
    assert template.extract_scope_ids(a) != template.extract_scope_ids(b)


def test_normalize_collapses_whitespace(template: SyncQueryTemplate) -> None:
    compact = template.render(["athens"])
    spaced = compact.replace(" ", "   ").replace("\n", "\n\n  ")
    assert template.normalize(compact) == template.normalize(spaced)


def test_structure_detects_changed_projection(template: SyncQueryTemplate) -> None:
    current = template.render(["athens"])
    edited = current.replace("l.text AS location_text", "l.name AS location_text")
    assert not template.same_structure(current, edited)


def test_validate_structure_matching(template: SyncQueryTemplate) -> None:
    remote = template.render(["chania", "athens"])
    result = template.validate_structure(remote, ["athens", "chania"])
    assert result.structure_matches
    assert result.scope_ids_match
    assert result.is_valid
    assert result.expected_query == remote


def test_validate_structure_scope_difference(template: SyncQueryTemplate) -> None:
    remote = template.render(["athens"])
    result = template.validate_structure(remote, ["athens", "chania"])
    assert result.structure_matches
    assert not result.scope_ids_match
    assert result.actual_scope_ids == ["athens"]
    assert result.expected_scope_ids == ["athens", "chania"]


# --- construction ---


@pytest.mark.parametrize(
    "broken",
    [
        SYNC_QUERY_TEMPLATE.replace("{{CITY_IDS}}", "'athens'"),
        SYNC_QUERY_TEMPLATE + " -- {{CITY_IDS}}",
        'SELECT * FROM "Subject" s WHERE s.id = {{CITY_IDS}}',
    ],
    ids=["missing", "duplicated", "outside-membership"],
)
def test_invalid_template_rejected(broken: str) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        SyncQueryTemplate(broken)
    assert exc_info.value.code == ErrorCode.SYNC_TEMPLATE_INVALID


# --- extra conditions ---


def test_with_extra_conditions_appends_parameters(template: SyncQueryTemplate) -> None:
    built = template.build(["athens", "chania"])
    narrowed = template.with_extra_conditions(built, {"m.id": "meeting-1", "s.id": "s-9"})
    assert narrowed.params == ["athens", "chania", "meeting-1", "s-9"]
    assert 'IN ($1, $2) AND m.id = $3 AND s.id = $4 AND m."released" = true' in narrowed.query
    assert template.extract_scope_ids(
        template.materialize(narrowed.query, narrowed.params)
    ) == ["athens", "chania"]


def test_with_extra_conditions_empty_is_noop(template: SyncQueryTemplate) -> None:
    built = template.build(["athens"])
    assert template.with_extra_conditions(built, {}) == built


def test_with_extra_conditions_needs_membership_clause(template: SyncQueryTemplate) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        template.with_extra_conditions(BuiltQuery("SELECT 1", []), {"m.id": "meeting-1"})
    assert exc_info.value.code == ErrorCode.SYNC_TEMPLATE_INVALID
