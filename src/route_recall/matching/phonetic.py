"""Phonetic normalization for fuzzy street matching.

Speech-to-text systems routinely hear the right sound and write the wrong
character (陆 for 路, 山 for 三). Normalization undoes this in two steps:

1. Canonical text: homophones and common mis-transcriptions of digits,
   directions and address suffixes are replaced by the real character,
   and runs of whitespace/punctuation collapse to a single separator.
2. Phonetic key: the canonical text transliterated to toneless pinyin,
   lowercased, with no separators.

Also provides Levenshtein distance for comparing phonetic keys.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, NamedTuple

from pypinyin import Style, lazy_pinyin

from route_recall.errors import ConfigurationError
from route_recall.logging import get_logger

logger = get_logger(__name__)

SEPARATOR = " "

# Whitespace, punctuation and symbols; CJK characters and digits are word chars
_SEPARATOR_RUN = re.compile(r"[\W_]+")

# Real character -> characters speech recognition writes in its place.
# A variant may belong to one real character only, and no variant may
# contain a real character, otherwise normalizing twice would drift.
DEFAULT_HOMOPHONES: dict[str, list[str]] = {
    # Address suffixes
    "路": ["陆", "鹿", "录", "露", "璐"],
    "街": ["杰", "洁", "节", "阶", "界"],
    "道": ["到", "稻", "导", "盗"],
    "巷": ["项", "像", "向", "象"],
    "弄": ["龙", "农", "浓"],
    "楼": ["娄", "搂", "篓"],
    "幢": ["撞", "壮", "状"],
    "苑": ["院", "园", "元", "源"],
    "桥": ["乔", "俏", "巧"],
    "室": ["是", "市", "式"],
    "区": ["去", "曲", "趋"],
    "号": ["好", "浩", "毫"],
    # Directions
    "东": ["冬", "咚", "懂"],
    "西": ["希", "息", "惜"],
    "南": ["难", "男", "楠"],
    "北": ["背", "贝", "倍"],
    # Digits
    "一": ["幺", "1", "伊", "衣"],
    "二": ["两", "2", "儿"],
    "三": ["山", "3", "散", "叁"],
    "四": ["4", "司", "死", "肆"],
    "五": ["舞", "5", "武", "午"],
    "六": ["溜", "6", "遛"],
    "七": ["期", "7", "齐", "气"],
    "八": ["发", "8", "巴", "拔"],
    "九": ["久", "9", "酒"],
    "十": ["石", "10", "实", "时"],
    "零": ["0", "林", "灵", "〇"],
}


def _has_separator(text: str) -> bool:
    return bool(_SEPARATOR_RUN.search(text))


@dataclass(frozen=True)
class HomophoneTable:
    """Immutable many-to-one substitution table.

    Build with `from_mapping`, which validates the table; the lookup
    structure is read-only so a table can be shared between threads.
    """

    variants: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    max_variant_length: int = 0

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, list[str]]) -> "HomophoneTable":
        """Build a table from real character -> list of variants.

        Args:
            mapping: Real character to the variants that should become it

        Returns:
            Validated HomophoneTable

        Raises:
            ConfigurationError: If the table is ambiguous or could make
                normalization unstable under reapplication
        """
        real_chars = set("".join(mapping.keys()))
        variant_to_real: dict[str, str] = {}

        for real, variants in mapping.items():
            if not real or _has_separator(real):
                raise ConfigurationError(
                    "Homophone target must be non-empty text without separators",
                    {"target": real},
                )
            for variant in variants:
                if not variant or _has_separator(variant):
                    raise ConfigurationError(
                        "Homophone variant must be non-empty text without separators",
                        {"target": real, "variant": variant},
                    )
                if real_chars.intersection(variant):
                    raise ConfigurationError(
                        "Homophone variant contains a target character",
                        {"target": real, "variant": variant},
                    )
                previous = variant_to_real.get(variant)
                if previous is not None and previous != real:
                    raise ConfigurationError(
                        "Homophone variant maps to more than one target",
                        {"variant": variant, "targets": [previous, real]},
                    )
                variant_to_real[variant] = real

        longest = max((len(v) for v in variant_to_real), default=0)
        return cls(variants=MappingProxyType(variant_to_real), max_variant_length=longest)

    @classmethod
    def default(cls) -> "HomophoneTable":
        return cls.from_mapping(DEFAULT_HOMOPHONES)

    def __len__(self) -> int:
        return len(self.variants)

    def apply(self, text: str) -> str:
        """Replace variants with their real characters.

        One greedy left-to-right pass; at each position the longest
        variant wins. Unmapped characters pass through unchanged.
        """
        if not self.variants:
            return text

        out: list[str] = []
        i = 0
        length = len(text)
        while i < length:
            for size in range(min(self.max_variant_length, length - i), 0, -1):
                real = self.variants.get(text[i:i + size])
                if real is not None:
                    out.append(real)
                    i += size
                    break
            else:
                out.append(text[i])
                i += 1
        return "".join(out)


class NormalizedText(NamedTuple):
    """Result of normalizing a piece of text."""

    canonical: str
    phonetic_key: str

    @property
    def compact(self) -> str:
        """Canonical text with every separator removed."""
        return strip_separators(self.canonical)


def strip_separators(text: str) -> str:
    """Remove all whitespace and punctuation from text."""
    return _SEPARATOR_RUN.sub("", text)


def collapse_separators(text: str) -> str:
    """Collapse each run of whitespace/punctuation into one separator."""
    return _SEPARATOR_RUN.sub(SEPARATOR, text)


def is_separator(char: str) -> bool:
    return char == SEPARATOR or _has_separator(char)


class PhoneticNormalizer:
    """Maps raw text to canonical text and a phonetic key.

    Pure and deterministic: the same input always gives the same output,
    and normalizing canonical text again changes nothing. Never raises.
    """

    def __init__(self, table: HomophoneTable | None = None):
        """Initialize the normalizer.

        Args:
            table: Homophone table to apply. Defaults to the built-in table.
        """
        self.table = table if table is not None else HomophoneTable.default()

    def canonicalize(self, text: str | None) -> str:
        """Return the canonical form of text."""
        if not text:
            return ""
        folded = unicodedata.normalize("NFKC", text)
        return self.table.apply(collapse_separators(folded))

    def phonetic_key(self, canonical: str) -> str:
        """Transliterate canonical text to a flat lowercase pinyin key."""
        if not canonical:
            return ""
        try:
            syllables = lazy_pinyin(canonical, style=Style.NORMAL, errors="default")
        except Exception as e:
            logger.warning(
                "Transliteration failed, falling back per character",
                extra={"text": canonical, "error": str(e)},
            )
            syllables = [self._transliterate_char(c) for c in canonical]
        return strip_separators("".join(syllables)).lower()

    def _transliterate_char(self, char: str) -> str:
        try:
            return "".join(lazy_pinyin(char, style=Style.NORMAL, errors="default"))
        except Exception:
            return char

    def normalize(self, text: str | None) -> NormalizedText:
        """Normalize text into (canonical text, phonetic key)."""
        canonical = self.canonicalize(text)
        return NormalizedText(canonical, self.phonetic_key(canonical))


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Calculate Levenshtein (edit) distance between two strings.

    The minimum number of single code point insertions, deletions and
    substitutions required to change one string into the other.

    Args:
        s1: First string
        s2: Second string
        max_distance: Stop early once the distance is known to exceed this;
            the return value is then max_distance + 1

    Returns:
        Number of edits needed
    """
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    if max_distance is not None and len(s1) - len(s2) > max_distance:
        return max_distance + 1

    if len(s2) == 0:
        return len(s1)

    # Two rows for space
    previous_row = list(range(len(s2) + 1))
    current_row = [0] * (len(s2) + 1)

    for i, c1 in enumerate(s1):
        current_row[0] = i + 1

        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row[j + 1] = min(insertions, deletions, substitutions)

        if max_distance is not None and min(current_row) > max_distance:
            return max_distance + 1

        previous_row, current_row = current_row, previous_row

    return previous_row[len(s2)]


def key_similarity(key1: str, key2: str) -> float:
    """Edit-distance similarity of two phonetic keys, case-insensitive.

    Returns:
        1 - distance / longer length, in [0.0, 1.0]; 0.0 if either is empty
    """
    if not key1 or not key2:
        return 0.0
    key1 = key1.lower()
    key2 = key2.lower()
    distance = levenshtein_distance(key1, key2)
    return 1.0 - distance / max(len(key1), len(key2))
