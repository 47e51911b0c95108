"""
Filter Extraction - Reads city, date and place filters out of query text.

The LLM is told the known cities and today's date and must answer with a
JSON object holding all four filter keys (null when absent).
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from councilsearch.config.errors import ExtractionError

from .models import CityScope, ExtractedFilters

if TYPE_CHECKING:
    from councilsearch.adapters.ollama import OllamaClient

logger = logging.getLogger(__name__)

__all__ = ["LLMFilterExtractor", "build_extraction_prompt"]

FILTER_EXTRACTION_PROMPT = """Εξαγωγή Φίλτρων Αναζήτησης

Είστε ένας βοηθός εξαγωγής φίλτρων. Αναλύετε ερωτήσεις αναζήτησης και εξάγετε σχετικά φίλτρα.
Επιστρέψτε ΜΟΝΟ ένα αντικείμενο JSON με την ακόλουθη δομή:
{
    "cityIds": string[] | null,
    "dateRange": { "start": string, "end": string } | null,
    "isLatest": boolean | null,
    "locationName": string | null
}

Κανόνες:
1. Συμπεριλάβετε μόνο φίλτρα που αναφέρονται ρητά ή σιωπηρά στην ερώτηση
2. Για ημερομηνίες, χρησιμοποιήστε μορφή ISO 8601
3. Για τα IDs των πόλεων, χρησιμοποιήστε τα ακριβή IDs από τη λίστα πόλεων
4. Για τοποθεσίες, εξάγετε μόνο το όνομα της τοποθεσίας (π.χ., "Πλατεία Συντάγματος")
5. Επιστρέψτε null για οποιοδήποτε φίλτρο δεν βρέθηκε, ποτέ μην παραλείπετε κλειδί
6. Για ερωτήσεις "τελευταία", ορίστε isLatest σε true και συμπεριλάβετε το σχετικό cityId
7. Σημερινή ημερομηνία: {today}

Διαθέσιμες πόλεις:
{cities}"""


def build_extraction_prompt(cities: list[CityScope], today: date) -> str:
    """Render the system prompt for a catalog and reference date."""
    city_lines = "\n".join(f"- {c.name} ({c.name_en}): {c.id}" for c in cities)
    return FILTER_EXTRACTION_PROMPT.replace("{today}", today.isoformat()).replace(
        "{cities}", city_lines
    )


class LLMFilterExtractor:
    """
    Filter extractor backed by a local LLM.

    Example:
        >>> extractor = LLMFilterExtractor(OllamaClient(), model="llama3.2")
        >>> filters = await extractor.extract("παιδικές χαρές", cities, date.today())
    """

    def __init__(
        self,
        client: OllamaClient,
        model: str = "llama3.2",
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._timeout = timeout

    async def extract(
        self,
        query: str,
        cities: list[CityScope],
        today: date,
    ) -> ExtractedFilters:
        """
        Extract filters from query text.

        Raises:
            ExtractionError: The model call failed, or the reply is not JSON,
                misses a key or names an unknown city
        """
        try:
            reply = await self._client.generate(
                self._model,
                query,
                system=build_extraction_prompt(cities, today),
                json_output=True,
                timeout=self._timeout,
            )
        except httpx.HTTPStatusError as e:
            raise ExtractionError(
                f"Filter extraction model failed: status {e.response.status_code}",
                details={"model": self._model},
            ) from e

        try:
            payload = json.loads(reply)
        except json.JSONDecodeError as e:
            raise ExtractionError(
                "Filter extraction returned invalid JSON",
                details={"reply": reply[:200]},
            ) from e

        try:
            filters = ExtractedFilters.model_validate(payload)
        except ValidationError as e:
            raise ExtractionError(
                "Filter extraction returned an incomplete filter object",
                details={
                    "errors": e.errors(
                        include_url=False, include_input=False, include_context=False
                    )
                },
            ) from e

        known = {c.id for c in cities}
        unknown = [cid for cid in filters.city_ids or [] if cid not in known]
        if unknown:
            raise ExtractionError(
                "Filter extraction named unknown cities",
                details={"city_ids": unknown},
            )

        logger.debug("Extracted filters for '%s': %s", query[:50], filters)
        return filters
