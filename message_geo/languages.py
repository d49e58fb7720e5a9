"""
Language code -> reference-store name column mapping.

The localities table carries one name column per language ("name" for
English, "<code>_name" for the rest). The mapping is explicit so that an
unknown language or a malformed column is caught when settings load, not
spliced into SQL at query time.
"""

from __future__ import annotations

import re
from typing import Iterable, Mapping, Optional

from message_geo.errors import ConfigurationError

_IDENTIFIER_RE = re.compile(r"^[a-z_][a-z0-9_]*$")

DEFAULT_LANGUAGE_COLUMNS: dict[str, str] = {
    "en": "name",
    "ar": "ar_name",
    "de": "de_name",
    "es": "es_name",
    "fr": "fr_name",
    "id": "id_name",
    "it": "it_name",
    "ru": "ru_name",
    "uk": "uk_name",
    "ur": "ur_name",
    "zh": "zh_name",
}


def is_identifier(name: str) -> bool:
    return bool(_IDENTIFIER_RE.match(name))


def parse_language_columns(raw: str) -> dict[str, str]:
    """Parse "en:name,ar:ar_name" into a mapping. Blank input -> built-in table."""
    if not raw.strip():
        return dict(DEFAULT_LANGUAGE_COLUMNS)

    mapping: dict[str, str] = {}
    for pair in raw.split(","):
        if not pair.strip():
            continue
        code, sep, column = pair.partition(":")
        if not sep:
            raise ConfigurationError(f"language column entry [{pair.strip()}] is not code:column")
        mapping[code.strip().lower()] = column.strip()
    return mapping


class LanguageColumns:
    """Validated language -> column table."""

    def __init__(self, mapping: Optional[Mapping[str, str]] = None):
        mapping = dict(DEFAULT_LANGUAGE_COLUMNS if mapping is None else mapping)
        if not mapping:
            raise ConfigurationError("language column table is empty")
        for code, column in mapping.items():
            if not code or not is_identifier(column):
                raise ConfigurationError(
                    f"invalid language column mapping [{code}: {column}]"
                )
        self._mapping = mapping

    @classmethod
    def from_setting(cls, raw: str) -> "LanguageColumns":
        return cls(parse_language_columns(raw))

    def __contains__(self, code: str) -> bool:
        return code in self._mapping

    def unmapped(self, languages: Iterable[str]) -> list[str]:
        return sorted(code for code in languages if code not in self._mapping)

    def columns_for(self, languages: Iterable[str]) -> list[str]:
        """Name columns for a language set, sorted and de-duplicated."""
        missing = self.unmapped(languages)
        if missing:
            raise ConfigurationError(
                f"no reference-store name column for language(s) {', '.join(missing)}"
            )
        return sorted({self._mapping[code] for code in languages})
