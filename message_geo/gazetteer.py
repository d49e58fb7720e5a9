"""
Gazetteer-based place-name matching over free text.

The tenant's localities table is turned into an in-memory lexicon of
surface forms (every per-language name and every alternate name) that can be
matched against message text without spaCy or any ML model.

Design:
  - Every lexicon entry maps a surface form (what appears in text) to the
    canonical geometry of its locality. Many surface forms can point to the
    same geometry; the geometry, not the name, is what we deduplicate on.
  - Names shorter than three characters are dropped (too many false hits).
  - Surface forms are stored as tuples of word tokens, so matching is a
    dictionary lookup per candidate phrase and the scan is linear in the
    length of the message.
  - Longest phrase wins at each position: "Zawiyat at Tart" beats a
    single-token "Tart" if both are in the lexicon.
  - Case-insensitive matching with combining marks folded away, so vowelled
    Arabic (tashkeel) and accented Latin match their bare spellings.
  - Hits are returned in order of first mention in the message.
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from pydantic import ValidationError

from message_geo.errors import StoreError
from message_geo.models import FeatureCollection, GeoFeature

logger = logging.getLogger(__name__)

DEFAULT_MIN_NAME_LENGTH = 3

_TOKEN_RE = re.compile(r"\w+")


@dataclass(frozen=True)
class GazetteerEntry:
    names: tuple[str, ...]     # one value per language name column, may be comma lists
    alternate_names: str       # "Tarabulus,Tripoli,طرابلس"
    geometry: str              # '{"type":"Point","coordinates":[13.18472,32.88972]}'


class ReferenceStore(Protocol):
    async def query_localities(self, languages: frozenset[str]) -> list[GazetteerEntry]:
        ...


def normalize_text(text: str) -> str:
    """Lower-case, with combining marks (Arabic tashkeel, Latin accents) removed."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", stripped).lower()


def tokenize(text: str) -> tuple[str, ...]:
    return tuple(_TOKEN_RE.findall(normalize_text(text)))


def split_names(value: str) -> list[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


# ══════════════════════════════════════════════════════════════════════
# LEXICON
# ══════════════════════════════════════════════════════════════════════

class Lexicon:
    """Token-phrase -> canonical geometry lookup built from gazetteer rows."""

    def __init__(self, min_name_length: int = DEFAULT_MIN_NAME_LENGTH):
        self.min_name_length = min_name_length
        self._phrases: dict[tuple[str, ...], str] = {}
        self._features: dict[str, GeoFeature] = {}
        self.max_phrase_tokens = 0

    @classmethod
    def build(
        cls, entries: Iterable[GazetteerEntry], min_name_length: int = DEFAULT_MIN_NAME_LENGTH
    ) -> "Lexicon":
        lexicon = cls(min_name_length)
        for entry in entries:
            lexicon.add_entry(entry)
        return lexicon

    def add_entry(self, entry: GazetteerEntry) -> None:
        feature = _parse_geometry(entry.geometry)
        key = feature.canonical_geometry()
        self._features.setdefault(key, feature)

        for value in (*entry.names, entry.alternate_names):
            for name in split_names(value or ""):
                self.add_name(name, key)

    def add_name(self, name: str, geometry_key: str) -> None:
        if len(normalize_text(name)) < self.min_name_length:
            return
        phrase = tokenize(name)
        if not phrase:
            return
        existing = self._phrases.get(phrase)
        if existing is not None:
            if existing != geometry_key:
                logger.debug("Lexicon collision on '%s': keeping %s", name, existing)
            return
        self._phrases[phrase] = geometry_key
        self.max_phrase_tokens = max(self.max_phrase_tokens, len(phrase))

    def lookup(self, phrase: tuple[str, ...]) -> Optional[str]:
        return self._phrases.get(phrase)

    def feature(self, geometry_key: str) -> GeoFeature:
        return self._features[geometry_key]

    def __contains__(self, name: str) -> bool:
        return tokenize(name) in self._phrases

    def __len__(self) -> int:
        return len(self._phrases)

    def find_all(self, text: str) -> list[tuple[str, str]]:
        """
        Scan text for lexicon phrases.
        Returns (matched_surface_form, geometry_key) pairs in order of
        appearance, longest phrase first at each position, non-overlapping.
        """
        tokens = tokenize(text)
        hits: list[tuple[str, str]] = []
        i = 0
        while i < len(tokens):
            longest = min(self.max_phrase_tokens, len(tokens) - i)
            for n in range(longest, 0, -1):
                key = self._phrases.get(tokens[i:i + n])
                if key is not None:
                    hits.append((" ".join(tokens[i:i + n]), key))
                    i += n
                    break
            else:
                i += 1
        return hits


def _parse_geometry(geometry: str) -> GeoFeature:
    try:
        return GeoFeature.from_geojson(geometry)
    except (json.JSONDecodeError, TypeError, ValidationError) as e:
        raise StoreError(f"malformed locality geometry {geometry!r}") from e


# ══════════════════════════════════════════════════════════════════════
# MATCHER
# ══════════════════════════════════════════════════════════════════════

class GazetteerMatcher:
    """
    Find the localities a message mentions.

    Strategy:
      - Load the tenant's localities for its languages (one grouped query).
      - Build the lexicon fresh for the call.
      - Scan the message once, longest-match-first.
      - Return one feature per distinct geometry, first mention first.
    """

    def __init__(self, min_name_length: int = DEFAULT_MIN_NAME_LENGTH):
        self.min_name_length = min_name_length

    async def match(
        self,
        sentence: str,
        languages: frozenset[str],
        reference_store: ReferenceStore,
    ) -> FeatureCollection:
        if not sentence or not sentence.strip():
            return FeatureCollection.empty()

        entries = await reference_store.query_localities(languages)
        if not entries:
            logger.info("No localities found for languages %s", sorted(languages))
            return FeatureCollection.empty()

        lexicon = Lexicon.build(entries, self.min_name_length)
        return self.match_lexicon(sentence, lexicon)

    def match_lexicon(self, sentence: str, lexicon: Lexicon) -> FeatureCollection:
        hits = lexicon.find_all(sentence)
        result = FeatureCollection.of(lexicon.feature(key) for _, key in hits)
        logger.debug("Matched %s in sentence [%s]", [surface for surface, _ in hits], sentence)
        return result
