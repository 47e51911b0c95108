"""
Sync Query Template - The SQL the connector runs to fill the search index.

The template produces one row per subject with nested arrays of speaker
segments and contributions, restricted to released meetings of a set of
cities. Its single placeholder, ``{{CITY_IDS}}``, sits inside the
WHERE-clause membership test.

Scope-ID extraction and structural comparison use pattern matching over the
SQL text. Callers go through ``SyncQueryTemplate`` only, so the matching can
be swapped for a real SQL parser without touching them.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from councilsearch.config.errors import ConfigurationError, ErrorCode, InputError

from .models import BuiltQuery, StructureComparison

__all__ = ["PLACEHOLDER", "SYNC_QUERY_TEMPLATE", "SyncQueryTemplate", "quote_literal"]

PLACEHOLDER = "{{CITY_IDS}}"

SYNC_QUERY_TEMPLATE = """
SELECT
          s.*,
          l.text AS location_text,
          ST_AsGeoJSON(l.coordinates)::jsonb AS location_geojson,
          t.id AS topic_id, t.name AS topic_name, t.name_en AS topic_name_en,
          p.id AS introduced_by_person_id, p.name AS introduced_by_person_name, p.name_en AS introduced_by_person_name_en,
          pa.id AS introduced_by_party_id, pa.name AS introduced_by_party_name, pa.name_en AS introduced_by_party_name_en,
          c.id AS city_id, c.name AS city_name, c.name_en AS city_name_en,
          m.id AS councilMeeting_id, m."dateTime" AS meeting_date, m.name AS meeting_name,
          m.released AS meeting_released,
          COALESCE(
            jsonb_agg(
              jsonb_build_object(
                'segment_id', ss.id,
                'speaker', jsonb_build_object(
                  'person_id', sp.id,
                  'person_name', sp.name,
                  'person_name_en', sp.name_en,
                  'party_id', spa.id,
                  'party_name', spa.name,
                  'party_name_en', spa.name_en
                ),
                'text', u.utterances_text,
                'summary', sss.summary
              )
            ) FILTER (WHERE ss.id IS NOT NULL), '[]'::jsonb
          ) AS speaker_segments,
          (
            SELECT COALESCE(
              jsonb_agg(
                jsonb_build_object(
                  'contribution_id', co.id,
                  'person_id', co."speakerId",
                  'text', co.text
                )
              ), '[]'::jsonb
            )
            FROM "Contribution" co
            WHERE co."subjectId" = s.id
          ) AS contributions
        FROM "Subject" s
        LEFT JOIN "Location" l ON s."locationId" = l.id
        LEFT JOIN "Topic" t ON s."topicId" = t.id
        LEFT JOIN "Person" p ON s."personId" = p.id
        LEFT JOIN LATERAL (
          SELECT r."partyId", r."cityId"
          FROM "Role" r
          WHERE r."personId" = p.id
            AND r."partyId" IS NOT NULL
            AND (r."startDate" IS NULL OR r."startDate" <= NOW())
            AND (r."endDate" IS NULL OR r."endDate" > NOW())
          ORDER BY r."createdAt" DESC
          LIMIT 1
        ) pr ON true
        LEFT JOIN "Party" pa ON pr."partyId" = pa.id
        LEFT JOIN "City" c ON s."cityId" = c.id
        LEFT JOIN "CouncilMeeting" m ON s."councilMeetingId" = m.id AND s."cityId" = m."cityId"
        LEFT JOIN "SubjectSpeakerSegment" sss ON sss."subjectId" = s.id
        LEFT JOIN "SpeakerSegment" ss ON ss.id = sss."speakerSegmentId"
        LEFT JOIN "SpeakerTag" st ON ss."speakerTagId" = st.id
        LEFT JOIN "Person" sp ON st."personId" = sp.id
        LEFT JOIN LATERAL (
          SELECT r."partyId", r."cityId"
          FROM "Role" r
          WHERE r."personId" = sp.id
            AND r."partyId" IS NOT NULL
            AND (r."startDate" IS NULL OR r."startDate" <= NOW())
            AND (r."endDate" IS NULL OR r."endDate" > NOW())
          ORDER BY r."createdAt" DESC
          LIMIT 1
        ) spr ON true
        LEFT JOIN "Party" spa ON spr."partyId" = spa.id
        LEFT JOIN LATERAL (
          SELECT
            string_agg(u.text, ' ' ORDER BY u."startTimestamp") AS utterances_text
          FROM "Utterance" u
          WHERE u."speakerSegmentId" = ss.id
        ) u ON true
        WHERE m."cityId" IN ({{CITY_IDS}}) AND m."released" = true
        GROUP BY
          s.id, l.text, l.coordinates, t.id, t.name, t.name_en,
          p.id, p.name, p.name_en, pa.id, pa.name, pa.name_en,
          c.id, c.name, c.name_en, m.id, m."dateTime", m.name, m.released
"""

MEMBERSHIP_PATTERN = re.compile(r'WHERE\s+m\."cityId"\s+IN\s*\(([^)]*)\)', re.IGNORECASE)
CANONICAL_MEMBERSHIP = f'WHERE m."cityId" IN ({PLACEHOLDER})'
MARKER_PATTERN = re.compile(r"\$(\d+)")
WHITESPACE = re.compile(r"\s+")
SCOPE_ID_FORBIDDEN_CHARS = (",", ")")


def quote_literal(value: str) -> str:
    """Quote a SQL string literal, doubling embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


def _unquote(token: str) -> str:
    token = token.strip()
    if len(token) >= 2 and token[0] == token[-1] == "'":
        return token[1:-1].replace("''", "'")
    return token.strip("'\"")


class SyncQueryTemplate:
    """
    Build, materialize, parse and compare sync queries.

    Example:
        >>> template = SyncQueryTemplate()
        >>> built = template.build(["athens", "chania"])
        >>> sql = template.materialize(built.query, built.params)
        >>> template.extract_scope_ids(sql)
        ['athens', 'chania']
    """

    def __init__(self, template: str = SYNC_QUERY_TEMPLATE) -> None:
        occurrences = template.count(PLACEHOLDER)
        if occurrences != 1:
            raise ConfigurationError(
                f"Sync template must contain {PLACEHOLDER} exactly once, found {occurrences}",
                code=ErrorCode.SYNC_TEMPLATE_INVALID,
            )
        match = MEMBERSHIP_PATTERN.search(template)
        if not match or match.group(1).strip() != PLACEHOLDER:
            raise ConfigurationError(
                f"Sync template must use {PLACEHOLDER} in the WHERE-clause membership test",
                code=ErrorCode.SYNC_TEMPLATE_INVALID,
            )
        self.template = template

    def build(self, scope_ids: Iterable[str]) -> BuiltQuery:
        """
        Replace the placeholder with one positional marker per scope ID.

        IDs are de-duplicated and sorted so a scope set has one canonical query.

        Raises:
            InputError: No scope IDs, a blank one, or one holding "," or ")"
        """
        params = sorted(set(scope_ids))
        if not params:
            raise InputError(
                "At least one city ID must be provided",
                code=ErrorCode.SYNC_SCOPE_EMPTY,
            )
        if any(not p.strip() for p in params):
            raise InputError("City IDs must not be blank", code=ErrorCode.SYNC_SCOPE_EMPTY)
        unsafe = [p for p in params if any(ch in p for ch in SCOPE_ID_FORBIDDEN_CHARS)]
        if unsafe:
            # Extraction splits the membership list on these characters
            raise InputError(
                "City IDs must not contain ',' or ')'",
                details={"invalid_scope_ids": unsafe},
                code=ErrorCode.VALIDATION_ERROR,
            )

        markers = ", ".join(f"${i}" for i in range(1, len(params) + 1))
        return BuiltQuery(self.template.replace(PLACEHOLDER, markers), params)

    def materialize(self, query: str, params: list[str]) -> str:
        """
        Embed each parameter as a quoted literal.

        Only call with scope IDs already checked against the city catalog.
        """

        def substitute(match: re.Match[str]) -> str:
            index = int(match.group(1)) - 1
            if not 0 <= index < len(params):
                raise InputError(f"No parameter for marker ${index + 1}")
            return quote_literal(params[index])

        return MARKER_PATTERN.sub(substitute, query)

    def render(self, scope_ids: Iterable[str]) -> str:
        """Canonical executable query for a scope set."""
        built = self.build(scope_ids)
        return self.materialize(built.query, built.params)

    def extract_scope_ids(self, query: str) -> list[str]:
        """Scope IDs of the membership test; empty when the query is unscoped."""
        match = MEMBERSHIP_PATTERN.search(query)
        if not match:
            return []
        return [token for token in (_unquote(t) for t in match.group(1).split(",")) if token]

    def normalize(self, query: str) -> str:
        """Query shape with the scope list and formatting removed."""
        shaped = MEMBERSHIP_PATTERN.sub(lambda _: CANONICAL_MEMBERSHIP, query, count=1)
        return WHITESPACE.sub(" ", shaped).strip()

    def same_structure(self, query_a: str, query_b: str) -> bool:
        return self.normalize(query_a) == self.normalize(query_b)

    def validate_structure(
        self,
        remote_query: str,
        expected_scope_ids: list[str],
    ) -> StructureComparison:
        """Compare a remote query with the canonical query for ``expected_scope_ids``."""
        expected_query = self.render(expected_scope_ids)
        actual = self.extract_scope_ids(remote_query)
        return StructureComparison(
            structure_matches=self.same_structure(remote_query, expected_query),
            scope_ids_match=sorted(set(actual)) == sorted(set(expected_scope_ids)),
            actual_scope_ids=actual,
            expected_scope_ids=sorted(set(expected_scope_ids)),
            remote_query=remote_query,
            expected_query=expected_query,
        )

    def with_extra_conditions(
        self,
        built: BuiltQuery,
        conditions: dict[str, str],
    ) -> BuiltQuery:
        """
        Narrow a built query with parameterized equality conditions.

        Args:
            built: Output of ``build``
            conditions: SQL column expression -> value. Expressions must be
                fixed by the caller, never user input.
        """
        if not conditions:
            return built
        params = list(built.params)
        clauses = []
        for expression, value in conditions.items():
            params.append(value)
            clauses.append(f"{expression} = ${len(params)}")
        extra = " AND " + " AND ".join(clauses)

        match = MEMBERSHIP_PATTERN.search(built.query)
        if match is None:
            raise ConfigurationError(
                "Sync query template has no city membership clause to narrow",
                code=ErrorCode.SYNC_TEMPLATE_INVALID,
            )
        query = built.query[: match.end()] + extra + built.query[match.end():]
        return BuiltQuery(query, params)
