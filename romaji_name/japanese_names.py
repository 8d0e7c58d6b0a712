"""
Japanese Name Parsing and Normalization Module

This module turns free-text name attributions from catalog records, museum metadata and
bibliographic citations into structured name records: surname/given/middle components,
kana and kanji spellings, an artist generation ordinal, and display strings.

## Overview

The core functionality is provided by the `RomajiNameParser` class, which runs a fixed
pipeline of stages over the input text:

1. **Text Normalization**: whitespace and punctuation variants, optional removal of
   parentheticals
2. **Flag Extraction**: anonymous/unknown, "after", "attributed to" and "school of"
   markers; co-listed names are dropped
3. **Kanji Extraction**: the first kanji/kana run is pulled out of the text
4. **Generation Extraction**: "II", "3", "三代", "nidaime" and friends
5. **Cleanup**: comma flip, punctuation, digits, stop words, lowercasing
6. **Disambiguation**: surname vs. given name, using the name dictionary, override lists
   and kanji evidence; non-Japanese names fall back to a Western layout
7. **Kanji Splitting**: guesses where the surname ends inside an unsegmented kanji name
8. **Composition**: locale-ordered `name`, `ascii` and `plain` strings

## Architecture

- **RomajiNameConfig**: immutable configuration, tables and precompiled patterns
- **AccentNormalizer**: diacritic canonicalization and romaji corrections
- **KanjiSplitter**: scored split-point search over a kanji name
- **NameComposer**: renders display strings from record fields
- **RomajiNameParser**: main engine; collaborators are injected

Every stage is a plain function `(PipelineState, ParseContext) -> PipelineState`. Records
are frozen dataclasses; stages return updated copies.

## Usage Examples

```python
from romaji_name import parse_name

record = parse_name("Utagawa Kunisada II (二代歌川国貞)")
record.name          # "Utagawa Kunisada II"
record.generation    # 2
record.kanji         # "歌川 国貞 二代"

parse_name("Oskar J. A. V. RIESENTHAL").middle   # "J. A. V."
```

## Thread Safety

After `init()` all tables and dictionary indexes are read-only. A parse touches no
shared mutable state, so one parser can serve many threads.
"""

from __future__ import annotations
import json
import logging
import re
import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from romaji_name.japanese_names_data import (
    AFTER_MARKERS,
    ATTRIBUTED_MARKERS,
    BAD_ROMAJI,
    GENERATION_FULLWIDTH,
    GENERATION_KANJI,
    GENERATION_ROMAN,
    GENERATION_SUFFIXES,
    GENERATION_WORDS,
    KANJI_GENERATION_MARKER,
    LETTER_TO_ACCENTS,
    LOCALE_TEMPLATES,
    NAME_PARTICLES,
    STOP_WORDS,
    UNKNOWN_KANJI_MARKERS,
    UNKNOWN_MARKERS,
)
from romaji_name.name_dictionary import (
    CacheInfo,
    DictionaryEntry,
    KanaTransliterator,
    NameDictionary,
    romaji_key,
)

_DATA_DIR = Path(__file__).parent / "data"


# ════════════════════════════════════════════════════════════════════════════════
# COMPILED REGEX PATTERNS
# ════════════════════════════════════════════════════════════════════════════════

# Ideographs, kana and the repeat/closing marks 々 〆 〻
_CJK_CHARS = "\u3005\u3006\u303b\u3040-\u309f\u30a0-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"
_KANJI_RUN_PATTERN = rf"(?:[\d０-９]{{1,2}})?[{_CJK_CHARS}](?:[{_CJK_CHARS}\s\d０-９()（）]*[{_CJK_CHARS}])?"
_PARENTHETICAL_PATTERN = r"[（(][^()（）]*[)）]"
_APOSTROPHE_VARIANTS_PATTERN = r"[‘’`´ʼ′]"
_COMMA_VARIANTS_PATTERN = r"[，、]"


def _phrase_pattern(phrases: Iterable[str]) -> str:
    """Alternation of phrases, longest first, with flexible inner whitespace."""
    ordered = sorted(phrases, key=len, reverse=True)
    return "|".join(r"\s+".join(re.escape(word) for word in phrase.split()) for phrase in ordered)


def _generation_pattern(index: int) -> str:
    """All spellings of generation `index + 1`."""
    number = index + 1
    suffixes = "|".join(GENERATION_SUFFIXES)
    kanji = rf"[{GENERATION_KANJI[index]}]\s*(?:{suffixes})"
    if number == 1:
        kanji = rf"初代目?|{kanji}"
    roman = rf"\b{GENERATION_ROMAN[index]}\b(?!\.)"
    arabic = rf"(?<!\d){number}\s*(?:{suffixes})|(?<!\d)\b{number}\b(?!\d)"
    fullwidth = rf"(?<![０-９]){GENERATION_FULLWIDTH[index]}(?![０-９])\s*(?:{suffixes})?"
    words = rf"(?i:\b(?:{'|'.join(GENERATION_WORDS[index])})\b)"
    return "|".join((kanji, roman, arabic, fullwidth, words))


# ════════════════════════════════════════════════════════════════════════════════
# RECORD TYPES
# ════════════════════════════════════════════════════════════════════════════════


class Locale(str, Enum):
    """Name order of a record: Japanese (surname first) or other (given first)."""

    JAPANESE = "japanese"
    OTHER = "other"


@dataclass(frozen=True)
class ParseOptions:
    """
    Parse-time options. `None` means "not supplied", so options can be layered over
    the options of a previous record.
    """

    strip_parens: Optional[bool] = None
    given_first: Optional[bool] = None
    flip_non_ja: Optional[bool] = None

    _ALIASES = {"stripParens": "strip_parens", "givenFirst": "given_first", "flipNonJa": "flip_non_ja"}

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> "ParseOptions":
        """Accepts snake_case keys as well as the camelCase keys used in settings documents."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in values.items():
            name = cls._ALIASES.get(key, key)
            if name in known and value is not None:
                kwargs[name] = bool(value)
        return cls(**kwargs)

    def layered_over(self, defaults: "ParseOptions") -> "ParseOptions":
        """Fill unset options from `defaults`."""
        return ParseOptions(
            **{
                f.name: getattr(self, f.name) if getattr(self, f.name) is not None else getattr(defaults, f.name)
                for f in fields(self)
            }
        )

    def to_dict(self) -> Dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass(frozen=True)
class NameRecord:
    """Structured result of parsing one name attribution."""

    original: str
    locale: Locale = Locale.JAPANESE
    given: Optional[str] = None
    surname: Optional[str] = None
    middle: Optional[str] = None
    given_kana: Optional[str] = None
    surname_kana: Optional[str] = None
    kana: Optional[str] = None
    given_kanji: Optional[str] = None
    surname_kanji: Optional[str] = None
    kanji: Optional[str] = None
    generation: Optional[int] = None
    name: Optional[str] = None
    ascii: Optional[str] = None
    plain: Optional[str] = None
    unknown: bool = False
    after: bool = False
    attributed: bool = False
    school: bool = False
    differs: bool = False
    options: ParseOptions = field(default_factory=ParseOptions)

    def to_dict(self) -> Dict[str, object]:
        """Populated fields only, with plain-value locale and options."""
        result: Dict[str, object] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or value is False:
                continue
            if isinstance(value, Locale):
                value = value.value
            elif isinstance(value, ParseOptions):
                value = value.to_dict()
                if not value:
                    continue
            result[f.name] = value
        return result


@dataclass(frozen=True)
class KanjiSplit:
    """Surname/given division of a kanji name. Either side may be missing."""

    surname: Optional[str]
    given: Optional[str]


@dataclass(frozen=True)
class SplitCandidate:
    """One split point tried by the kanji splitter, with its dictionary hits."""

    position: int
    surname: str
    given: str
    surname_entry: Optional[DictionaryEntry]
    given_entry: Optional[DictionaryEntry]

    @property
    def is_complete(self) -> bool:
        return self.surname_entry is not None and self.given_entry is not None

    @property
    def is_partial(self) -> bool:
        return (self.surname_entry is None) != (self.given_entry is None)

    @property
    def imbalance(self) -> int:
        return abs(len(self.surname) - len(self.given))


# ════════════════════════════════════════════════════════════════════════════════
# IMMUTABLE CONFIGURATION DATA
# ════════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RomajiNameConfig:
    """Immutable configuration containing all static data structures."""

    # Data locations
    dictionary_path: Path
    settings_path: Path
    cache_dir: Path

    # Normalization and extraction patterns
    whitespace_pattern: re.Pattern[str]
    parenthetical_pattern: re.Pattern[str]
    comma_variants_pattern: re.Pattern[str]
    kanji_run_pattern: re.Pattern[str]
    repeat_mark_pattern: re.Pattern[str]
    unknown_pattern: re.Pattern[str]
    after_pattern: re.Pattern[str]
    attributed_pattern: re.Pattern[str]
    school_pattern: re.Pattern[str]
    extra_names_pattern: re.Pattern[str]
    generation_patterns: Tuple[re.Pattern[str], ...]

    # Cleanup patterns
    apostrophe_variants_pattern: re.Pattern[str]
    loose_apostrophe_pattern: re.Pattern[str]
    comma_flip_pattern: re.Pattern[str]
    punctuation_pattern: re.Pattern[str]
    digits_pattern: re.Pattern[str]
    letter_pattern: re.Pattern[str]
    stray_marks_pattern: re.Pattern[str]

    # Accent tables (read-only views)
    correct_accents_map: Mapping[str, str]
    to_ascii_map: Mapping[str, str]
    strip_accents_map: Mapping[str, str]
    canonical_accents: Mapping[str, str]
    accent_pattern: re.Pattern[str]
    repeated_vowel_pattern: re.Pattern[str]
    bad_romaji_rules: Tuple[Tuple[re.Pattern[str], str], ...]
    spurious_m_pattern: re.Pattern[str]

    locale_templates: Mapping[str, Tuple[str, ...]]

    # Override lists from settings (romaji keys)
    fixed_given: FrozenSet[str] = frozenset()
    fixed_surname: FrozenSet[str] = frozenset()

    @classmethod
    def create_default(cls) -> "RomajiNameConfig":
        """Factory method to create default configuration."""
        correct_accents, to_ascii, strip_accents, canonical = _build_accent_tables(LETTER_TO_ACCENTS)
        accent_chars = "".join(LETTER_TO_ACCENTS.values())
        long_vowels = [letter + letter for letter in LETTER_TO_ACCENTS if letter.islower() and letter != "i"]

        return cls(
            dictionary_path=_DATA_DIR / "names.csv",
            settings_path=_DATA_DIR / "settings.json",
            cache_dir=Path.home() / ".cache" / "romaji_name",
            whitespace_pattern=re.compile(r"\s+"),
            parenthetical_pattern=re.compile(_PARENTHETICAL_PATTERN),
            comma_variants_pattern=re.compile(_COMMA_VARIANTS_PATTERN),
            kanji_run_pattern=re.compile(_KANJI_RUN_PATTERN),
            repeat_mark_pattern=re.compile(r"([^\s々])々"),
            unknown_pattern=re.compile(
                rf"(?i:\b(?:{_phrase_pattern(UNKNOWN_MARKERS)})\b)|{'|'.join(UNKNOWN_KANJI_MARKERS)}"
            ),
            after_pattern=re.compile(rf"\b(?:{_phrase_pattern(AFTER_MARKERS)})\b", re.IGNORECASE),
            attributed_pattern=re.compile(rf"\b(?:{_phrase_pattern(ATTRIBUTED_MARKERS)})\b\.?", re.IGNORECASE),
            school_pattern=re.compile(
                r"\bschool\s+of\s+(?:the\s+)?([^\W\d_]+)|\b([^\W\d_]+)\s+school\b", re.IGNORECASE
            ),
            extra_names_pattern=re.compile(r"\s+(?:and|&)\s+.*$", re.IGNORECASE),
            generation_patterns=tuple(re.compile(_generation_pattern(i)) for i in range(len(GENERATION_ROMAN))),
            apostrophe_variants_pattern=re.compile(_APOSTROPHE_VARIANTS_PATTERN),
            loose_apostrophe_pattern=re.compile(r"(?<=\w)'\s+(?=\w)"),
            comma_flip_pattern=re.compile(r"^\s*([^,]+?)\s*,\s*([^,]+?)\s*$"),
            punctuation_pattern=re.compile(r"[^\w\s'\-]"),
            digits_pattern=re.compile(r"[\d_]+"),
            letter_pattern=re.compile(r"[^\W\d_]"),
            stray_marks_pattern=re.compile(r"(?<!\w)['\-]+|['\-]+(?!\w)"),
            correct_accents_map=correct_accents,
            to_ascii_map=to_ascii,
            strip_accents_map=strip_accents,
            canonical_accents=canonical,
            accent_pattern=re.compile(f"[{accent_chars}]"),
            repeated_vowel_pattern=re.compile("|".join(["ou(?![aeiou])"] + long_vowels), re.IGNORECASE),
            bad_romaji_rules=tuple((re.compile(pattern), replacement) for pattern, replacement in BAD_ROMAJI),
            spurious_m_pattern=re.compile(r"m(?![aeiouy])"),
            locale_templates=LOCALE_TEMPLATES,
        )

    def with_fixed_names(self, given: Iterable[str], surname: Iterable[str]) -> "RomajiNameConfig":
        """Immutable update method for the override lists."""
        return replace(
            self,
            fixed_given=frozenset(romaji_key(name) for name in given),
            fixed_surname=frozenset(romaji_key(name) for name in surname),
        )

    def with_cache_dir(self, new_cache_dir: Path) -> "RomajiNameConfig":
        return replace(self, cache_dir=new_cache_dir)

    def with_dictionary_path(self, dictionary_path: Path) -> "RomajiNameConfig":
        return replace(self, dictionary_path=dictionary_path)


def _build_accent_tables(
    letter_to_accents: Mapping[str, str],
) -> Tuple[Mapping[str, str], Mapping[str, str], Mapping[str, str], Mapping[str, str]]:
    """Derive the correct/ascii/strip tables from the base vowel -> variants table."""
    correct_accents: Dict[str, str] = {}
    to_ascii: Dict[str, str] = {}
    strip_accents: Dict[str, str] = {}
    canonical: Dict[str, str] = {}

    for letter, accents in letter_to_accents.items():
        canonical[letter] = accents[0]
        for accent in accents:
            correct_accents[accent] = accents[0]
            to_ascii[accent] = letter + letter.lower()
            strip_accents[accent] = letter

    return (
        MappingProxyType(correct_accents),
        MappingProxyType(to_ascii),
        MappingProxyType(strip_accents),
        MappingProxyType(canonical),
    )


def load_settings(path: Optional[Path]) -> Tuple[List[str], List[str]]:
    """
    Read the fixed given/surname override lists from a settings document:
    `{"fixedNames": {"given": [...], "surname": [...]}}`.

    A missing or malformed document yields empty lists.
    """
    if path is None or not path.exists():
        if path is not None:
            logging.warning(f"Settings file {path} not found. Using empty name overrides.")
        return [], []

    try:
        with path.open(encoding="utf-8") as f:
            settings = json.load(f)
    except (OSError, ValueError) as e:
        logging.warning(f"Failed to load settings from {path}: {e}. Using empty name overrides.")
        return [], []

    fixed = settings.get("fixedNames", {}) if isinstance(settings, dict) else {}
    given = [str(name) for name in fixed.get("given", [])]
    surname = [str(name) for name in fixed.get("surname", [])]
    return given, surname


# ════════════════════════════════════════════════════════════════════════════════
# ACCENT NORMALIZATION SERVICE
# ════════════════════════════════════════════════════════════════════════════════


class AccentNormalizer:
    """Diacritic canonicalization and romaji spelling corrections."""

    def __init__(self, config: RomajiNameConfig):
        self._config = config

    def correct_accents(self, text: str) -> str:
        """Every diacritic variant -> the canonical (macron) form. Idempotent."""
        return self._config.accent_pattern.sub(lambda m: self._config.correct_accents_map[m.group(0)], text)

    def to_ascii(self, text: str) -> str:
        """Accented vowels -> doubled plain letters ("Ō" -> "Oo")."""
        return self._config.accent_pattern.sub(lambda m: self._config.to_ascii_map[m.group(0)], text)

    def strip_accents(self, text: str) -> str:
        """Accented vowels -> the bare letter."""
        return self._config.accent_pattern.sub(lambda m: self._config.strip_accents_map[m.group(0)], text)

    def convert_repeated_vowels(self, text: str) -> str:
        """
        Re-accent doubled vowels and "ou": "hanjirou" -> "hanjirō".

        "ii" is left alone, as is "ou" in front of another vowel (Inoue).
        """
        return self._config.repeated_vowel_pattern.sub(
            lambda m: self._config.canonical_accents[m.group(0)[0]], text
        )

    def correct_bad_romaji(self, text: str) -> str:
        for pattern, replacement in self._config.bad_romaji_rules:
            text = pattern.sub(replacement, text)
        return text

    def correct_spurious_m(self, text: str) -> str:
        """An "m" before a consonant or at the end of a word is a moraic "n"."""
        return self._config.spurious_m_pattern.sub("n", text)


def _capitalize_name_part(part: str) -> str:
    """Lowercase the word, then uppercase its first letter: SHUN'EI -> Shun'ei."""
    if not part:
        return part
    return part[0].upper() + part[1:].lower()


def capitalize_words(text: Optional[str]) -> Optional[str]:
    if not text:
        return text
    return " ".join(word if word in NAME_PARTICLES else _capitalize_name_part(word) for word in text.split())


# ════════════════════════════════════════════════════════════════════════════════
# PIPELINE STATE
# ════════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PipelineState:
    """Working text plus the record built so far."""

    text: str
    record: NameRecord
    done: bool = False
    # Ordinal found in the kanji, 1 included
    kanji_generation: Optional[int] = None
    # Dictionary readings chosen by the disambiguator, for the kanji splitter
    surname_entry: Optional[DictionaryEntry] = None
    given_entry: Optional[DictionaryEntry] = None


@dataclass(frozen=True)
class ParseContext:
    """Everything a stage may read. Nothing in here is mutated during a parse."""

    config: RomajiNameConfig
    accents: AccentNormalizer
    dictionary: NameDictionary
    transliterator: KanaTransliterator
    splitter: "KanjiSplitter"
    composer: "NameComposer"
    options: ParseOptions


Stage = Callable[[PipelineState, ParseContext], PipelineState]


# ════════════════════════════════════════════════════════════════════════════════
# TEXT NORMALIZATION AND FLAG EXTRACTION STAGES
# ════════════════════════════════════════════════════════════════════════════════


def normalize_text(state: PipelineState, ctx: ParseContext) -> PipelineState:
    config = ctx.config
    text = config.comma_variants_pattern.sub(",", state.text)
    if ctx.options.strip_parens:
        text = config.parenthetical_pattern.sub(" ", text)
    text = config.whitespace_pattern.sub(" ", text).strip()
    return replace(state, text=text)


def extract_unknown(state: PipelineState, ctx: ParseContext) -> PipelineState:
    if not ctx.config.unknown_pattern.search(state.text):
        return state
    record = replace(state.record, unknown=True, locale=Locale.OTHER)
    return PipelineState(text="", record=record, done=True)


def extract_after(state: PipelineState, ctx: ParseContext) -> PipelineState:
    text, count = ctx.config.after_pattern.subn(" ", state.text)
    if not count:
        return state
    return replace(state, text=text, record=replace(state.record, after=True))


def extract_attributed(state: PipelineState, ctx: ParseContext) -> PipelineState:
    text, count = ctx.config.attributed_pattern.subn(" ", state.text)
    if not count:
        return state
    return replace(state, text=text, record=replace(state.record, attributed=True))


def extract_school(state: PipelineState, ctx: ParseContext) -> PipelineState:
    """ "School of X" / "X school": X is the surname and nothing else is parsed."""
    match = ctx.config.school_pattern.search(state.text)
    if not match:
        return state

    word = ctx.accents.correct_accents((match.group(1) or match.group(2)).lower())
    kana = ctx.transliterator.to_hiragana(ctx.transliterator.clean_romaji(ctx.accents.to_ascii(word)))
    record = replace(
        state.record,
        school=True,
        surname=capitalize_words(word),
        surname_kana=kana or None,
        locale=Locale.JAPANESE if kana else Locale.OTHER,
    )
    return PipelineState(text="", record=record, done=True)


def drop_extra_names(state: PipelineState, ctx: ParseContext) -> PipelineState:
    """ "X and Y" -> "X"."""
    return replace(state, text=ctx.config.extra_names_pattern.sub("", state.text))


# ════════════════════════════════════════════════════════════════════════════════
# KANJI EXTRACTION STAGE
# ════════════════════════════════════════════════════════════════════════════════


def extract_kanji(state: PipelineState, ctx: ParseContext) -> PipelineState:
    """
    Pull the first kanji/kana run out of the text.

    If the run sits inside a parenthetical the whole parenthetical goes with it, so a
    romanized alias next to the kanji ("(国富 Toyokuni II)") does not reach the romaji
    stages. Any later kanji runs are discarded; only the first is kept.
    """
    config = ctx.config
    run = config.kanji_run_pattern.search(state.text)
    if not run:
        return state

    span = run.span()
    for group in config.parenthetical_pattern.finditer(state.text):
        if group.start() <= run.start() and run.end() <= group.end():
            span = group.span()
            break

    text = state.text[: span[0]] + " " + state.text[span[1] :]
    text = config.kanji_run_pattern.sub(" ", text)

    blob = re.sub(r"[()（）]", " ", run.group(0))
    blob = config.whitespace_pattern.sub(" ", blob).strip()
    blob = config.repeat_mark_pattern.sub(lambda m: m.group(1) * 2, blob)
    # A repeat mark with nothing to repeat
    blob = config.whitespace_pattern.sub(" ", blob.replace("々", " ")).strip()
    blob, generation = strip_generation(blob, config, allow_inversion=False)

    groups = blob.split()
    if len(groups) == 2 and all(len(g) >= 4 for g in groups):
        # Two complete alternate names, not surname + given
        groups = groups[:1]

    record = state.record
    if generation is not None:
        record = replace(record, generation=generation if generation > 1 else None)
    if len(groups) == 2:
        record = replace(record, kanji=" ".join(groups), surname_kanji=groups[0], given_kanji=groups[1])
    elif groups:
        record = replace(record, kanji=groups[0])

    return replace(state, text=text, record=record, kanji_generation=generation if groups else None)


# ════════════════════════════════════════════════════════════════════════════════
# GENERATION EXTRACTION STAGE
# ════════════════════════════════════════════════════════════════════════════════


def strip_generation(text: str, config: RomajiNameConfig, allow_inversion: bool = True) -> Tuple[str, Optional[int]]:
    """
    Find and remove a generation marker. Returns the remaining text and the ordinal
    (1 included; callers decide what to keep).

    Ordinals are tried from 1 upwards and the first one that matches wins. With
    `allow_inversion`, "Given II Surname" / "Given II, Surname" becomes "Surname Given".
    """
    for index, pattern in enumerate(config.generation_patterns):
        match = pattern.search(text)
        if not match:
            continue

        generation = index + 1
        if allow_inversion:
            inverted = re.match(
                rf"^\s*([^\s,]+)\s+{re.escape(match.group(0))}\s*,?\s+([^\s,]+)\s*$",
                text,
            )
            if inverted:
                return f"{inverted.group(2)} {inverted.group(1)}", generation

        remaining = text[: match.start()] + " " + text[match.end() :]
        return config.whitespace_pattern.sub(" ", remaining).strip(), generation

    return text, None


def extract_generation(state: PipelineState, ctx: ParseContext) -> PipelineState:
    text, generation = strip_generation(state.text, ctx.config)
    if generation is None:
        return replace(state, text=text)

    record = state.record
    if not ctx.config.letter_pattern.search(text) and not record.kanji:
        # A bare marker ("X") is not a name
        return replace(state, text=text)

    kanji_generation = state.kanji_generation
    if record.kanji and kanji_generation is not None and generation != kanji_generation:
        # The kanji belongs to another name of the same artist
        logging.debug(f"Generation {generation} differs from kanji generation {kanji_generation}: {record.original}")
        record = replace(record, differs=True, kanji=None, surname_kanji=None, given_kanji=None)

    record = replace(record, generation=generation if generation > 1 else None)
    return replace(state, text=text, record=record)


# ════════════════════════════════════════════════════════════════════════════════
# NAME CLEANUP STAGE
# ════════════════════════════════════════════════════════════════════════════════


def cleanup_name(state: PipelineState, ctx: ParseContext) -> PipelineState:
    config = ctx.config
    text = config.apostrophe_variants_pattern.sub("'", state.text)
    text = config.loose_apostrophe_pattern.sub("'", text)

    flipped = config.comma_flip_pattern.match(text)
    if flipped:
        text = f"{flipped.group(2)} {flipped.group(1)}"

    text = config.punctuation_pattern.sub(" ", text)
    text = config.digits_pattern.sub(" ", text)
    text = config.stray_marks_pattern.sub(" ", text)

    words = [word for word in text.lower().split() if word not in STOP_WORDS]
    return replace(state, text=" ".join(words))


# ════════════════════════════════════════════════════════════════════════════════
# DISAMBIGUATION STAGE
# ════════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class _NameSlot:
    """One romanized name part while its position is being decided."""

    text: str
    kana: str = ""
    entry: Optional[DictionaryEntry] = None

    @property
    def key(self) -> str:
        return romaji_key(self.text)


def disambiguate_name(state: PipelineState, ctx: ParseContext) -> PipelineState:
    """
    Decide which romanized word is the surname and which the given name.

    Precedence: fixed-name overrides, then kanji evidence, then dictionary name types.
    A candidate that cannot be read as Hepburn romaji makes the whole name Western.
    """
    tokens = state.text.split()
    if not tokens:
        return state

    middle = None
    name_tokens = tokens
    if len(tokens) >= 3 and tokens[1] in NAME_PARTICLES:
        middle = tokens[1]
        name_tokens = [tokens[0]] + tokens[2:]

    if len(name_tokens) == 1:
        surname_text, given_text = "", name_tokens[0]
    elif ctx.options.given_first:
        given_text, surname_text = name_tokens[0], " ".join(name_tokens[1:])
    else:
        surname_text, given_text = name_tokens[0], " ".join(name_tokens[1:])

    surname = _NameSlot(surname_text, _transliterate(surname_text, ctx))
    given = _NameSlot(given_text, _transliterate(given_text, ctx))
    if not _is_japanese(surname) or not _is_japanese(given):
        return replace(state, record=_western_name(tokens, state.record, ctx))

    surname = replace(surname, text=ctx.accents.correct_accents(surname.text))
    given = replace(given, text=ctx.accents.correct_accents(given.text))

    # Overrides pin the order outright
    pinned = False
    config = ctx.config
    if surname.key in config.fixed_given or given.key in config.fixed_surname:
        surname, given = given, surname
        pinned = True
    elif surname.key in config.fixed_surname or given.key in config.fixed_given:
        pinned = True

    surname = replace(surname, entry=_lookup(surname.text, ctx))
    given = replace(given, entry=_lookup(given.text, ctx))

    decided = pinned
    if not decided and state.record.kanji:
        swap = _kanji_evidence(surname.entry, given.entry, state.record.kanji.replace(" ", ""))
        if swap is not None:
            decided = True
            if swap:
                surname, given = given, surname

    if not decided and _types_reversed(surname.entry, given.entry):
        surname, given = given, surname

    surname_romaji, surname_kana = _resolve_slot(surname, ctx)
    given_romaji, given_kana = _resolve_slot(given, ctx)
    record = replace(
        state.record,
        locale=Locale.JAPANESE,
        surname=surname_romaji,
        given=given_romaji,
        middle=middle,
        surname_kana=surname_kana,
        given_kana=given_kana,
    )
    return replace(state, record=record, surname_entry=surname.entry, given_entry=given.entry)


def _transliterate(text: str, ctx: ParseContext) -> str:
    if not text:
        return ""
    romaji = ctx.transliterator.clean_romaji(ctx.accents.to_ascii(text))
    return ctx.transliterator.to_hiragana(romaji)


def _is_japanese(slot: _NameSlot) -> bool:
    # Single letters are tolerated as initials
    return len(slot.text) <= 1 or bool(slot.kana)


def _lookup(text: str, ctx: ParseContext) -> Optional[DictionaryEntry]:
    if not text:
        return None
    romaji = ctx.transliterator.clean_romaji(ctx.accents.to_ascii(text))
    romaji = ctx.accents.correct_bad_romaji(ctx.accents.correct_spurious_m(romaji))
    return ctx.dictionary.find(romaji)


def _kanji_side(entry: Optional[DictionaryEntry], kanji: str) -> Optional[str]:
    """Where an entry's kanji sits in the full kanji name: "surname" (front) or "given"."""
    if entry is None:
        return None
    for spelling in entry.kanji:
        if spelling == kanji or kanji.endswith(spelling):
            return "given"
        if kanji.startswith(spelling):
            return "surname"
    return None


def _kanji_evidence(
    surname_entry: Optional[DictionaryEntry], given_entry: Optional[DictionaryEntry], kanji: str
) -> Optional[bool]:
    """True: swap, False: keep, None: the kanji says nothing either way."""
    surname_side = _kanji_side(surname_entry, kanji)
    given_side = _kanji_side(given_entry, kanji)
    swap_votes = (surname_side == "given") + (given_side == "surname")
    keep_votes = (surname_side == "surname") + (given_side == "given")
    if swap_votes == keep_votes:
        return None
    return swap_votes > keep_votes


def _types_reversed(surname_entry: Optional[DictionaryEntry], given_entry: Optional[DictionaryEntry]) -> bool:
    if surname_entry is not None and given_entry is not None:
        return surname_entry.is_given and given_entry.is_surname
    if surname_entry is not None:
        return surname_entry.is_given
    if given_entry is not None:
        return given_entry.is_surname
    return False


def _resolve_slot(slot: _NameSlot, ctx: ParseContext) -> Tuple[Optional[str], Optional[str]]:
    """Display romaji and kana for a slot, from the dictionary when it knows the name."""
    if not slot.text:
        return None, None
    if slot.entry is not None:
        romaji = ctx.accents.convert_repeated_vowels(ctx.accents.correct_bad_romaji(slot.entry.romaji))
        return capitalize_words(romaji), slot.entry.kana or slot.kana or None
    return capitalize_words(slot.text), slot.kana or None


def _western_name(tokens: List[str], record: NameRecord, ctx: ParseContext) -> NameRecord:
    """First word given, last word surname, the rest middle names ("J." for initials)."""
    words = [_capitalize_name_part(token) for token in tokens]
    given: Optional[str] = words[0]
    surname: Optional[str] = words[-1] if len(words) > 1 else None
    middle = " ".join(word + "." if len(word) == 1 else word for word in words[1:-1]) or None

    if ctx.options.flip_non_ja:
        given, surname = surname, given

    return replace(
        record,
        locale=Locale.OTHER,
        given=given,
        surname=surname,
        middle=middle,
        given_kana=None,
        surname_kana=None,
    )


# ════════════════════════════════════════════════════════════════════════════════
# KANJI SPLITTING
# ════════════════════════════════════════════════════════════════════════════════


class KanjiSplitter:
    """
    Guesses the surname/given boundary inside an unsegmented kanji name.

    Policy, in order:
    1. two characters or fewer: all given name
    2. three characters or fewer and a dictionary name: given name
    3. exactly four characters: 2/2
    4. try every split point from 2 to len-2. Prefer splits where both halves are
       dictionary names, most even first, then lowest split point. Failing that, an
       exactly even split where one half is a dictionary name. Otherwise no split.
    """

    def __init__(self, dictionary: NameDictionary):
        self._dictionary = dictionary

    def split(self, kanji: str) -> Optional[KanjiSplit]:
        if len(kanji) <= 2:
            return KanjiSplit(surname=None, given=kanji)
        if len(kanji) <= 3 and self._dictionary.find_kanji(kanji) is not None:
            return KanjiSplit(surname=None, given=kanji)
        if len(kanji) == 4:
            return KanjiSplit(surname=kanji[:2], given=kanji[2:])

        candidates = self._candidates(kanji)
        complete = [c for c in candidates if c.is_complete]
        if complete:
            best = min(complete, key=lambda c: (c.imbalance, c.position))
            return KanjiSplit(surname=best.surname, given=best.given)

        for candidate in candidates:
            if not candidate.is_partial or candidate.imbalance != 0:
                continue
            if candidate.surname_entry is not None:
                return KanjiSplit(surname=candidate.surname, given=kanji.replace(candidate.surname, "", 1))
            return KanjiSplit(surname=kanji[: kanji.rfind(candidate.given)], given=candidate.given)

        return None

    def _candidates(self, kanji: str) -> List[SplitCandidate]:
        return [
            SplitCandidate(
                position=position,
                surname=kanji[:position],
                given=kanji[position:],
                surname_entry=self._dictionary.find_kanji(kanji[:position]),
                given_entry=self._dictionary.find_kanji(kanji[position:]),
            )
            for position in range(2, len(kanji) - 1)
        ]


def split_by_readings(
    kanji: str, surname_entry: Optional[DictionaryEntry], given_entry: Optional[DictionaryEntry]
) -> Optional[KanjiSplit]:
    """Split using the kanji of the romanized names already identified."""
    if surname_entry is not None:
        for spelling in surname_entry.kanji:
            if spelling != kanji and kanji.startswith(spelling):
                return KanjiSplit(surname=spelling, given=kanji[len(spelling) :])
    if given_entry is not None:
        for spelling in given_entry.kanji:
            if kanji.endswith(spelling):
                return KanjiSplit(surname=kanji[: -len(spelling)] or None, given=spelling)
    return None


def split_kanji(state: PipelineState, ctx: ParseContext) -> PipelineState:
    record = state.record
    if not record.kanji or record.surname_kanji or record.given_kanji:
        return state

    split = split_by_readings(record.kanji, state.surname_entry, state.given_entry) or ctx.splitter.split(
        record.kanji
    )
    if split is None:
        logging.debug(f"Could not split kanji name {record.kanji!r}")
        return state
    return replace(state, record=replace(record, surname_kanji=split.surname, given_kanji=split.given))


# ════════════════════════════════════════════════════════════════════════════════
# COMPOSITION
# ════════════════════════════════════════════════════════════════════════════════


class NameComposer:
    """Renders the derived full-name fields of a record from its parts."""

    def __init__(self, config: RomajiNameConfig, accents: AccentNormalizer):
        self._config = config
        self._accents = accents

    def compose(self, record: NameRecord) -> NameRecord:
        template = self._config.locale_templates[record.locale.value]
        name = self._render(record, template, lambda word: word)
        if record.locale is Locale.JAPANESE:
            ascii_name = self._render(record, template, self._accents.to_ascii)
        else:
            ascii_name = name
        plain = self._render(record, template, self._accents.strip_accents)

        return replace(
            record,
            name=name or None,
            ascii=ascii_name or None,
            plain=plain or None,
            kana=self._compose_kana(record),
            kanji=self._compose_kanji(record),
        )

    def _render(self, record: NameRecord, template: Tuple[str, ...], transform: Callable[[str], str]) -> str:
        words = []
        for part in template:
            if part == "generation":
                continue
            value = capitalize_words(getattr(record, part))
            if value:
                words.append(transform(value))
        if words and record.generation and record.generation > 1:
            words.append(GENERATION_ROMAN[record.generation - 1])
        return " ".join(words)

    def _compose_kana(self, record: NameRecord) -> Optional[str]:
        if record.locale is not Locale.JAPANESE:
            return None
        return (record.surname_kana or "") + (record.given_kana or "") or None

    def _compose_kanji(self, record: NameRecord) -> Optional[str]:
        """ "歌川 国貞 二代": parts space-joined, then the generation marker. An unsplit blob is kept as is."""
        parts = [part for part in (record.surname_kanji, record.given_kanji) if part]
        if not parts:
            return record.kanji
        if record.generation and record.generation > 1:
            parts.append(GENERATION_KANJI[record.generation - 1][0] + KANJI_GENERATION_MARKER)
        return " ".join(parts)


def compose_name(state: PipelineState, ctx: ParseContext) -> PipelineState:
    return replace(state, record=ctx.composer.compose(state.record))


def flag_unknown(state: PipelineState, ctx: ParseContext) -> PipelineState:
    record = state.record
    if record.name or record.kanji or record.surname or record.given:
        return state
    return replace(state, record=replace(record, unknown=True))


PIPELINE: Tuple[Stage, ...] = (
    normalize_text,
    extract_unknown,
    extract_after,
    extract_attributed,
    extract_school,
    drop_extra_names,
    extract_kanji,
    extract_generation,
    cleanup_name,
    disambiguate_name,
    split_kanji,
)

# Always run, including after a short-circuit
FINAL_STAGES: Tuple[Stage, ...] = (compose_name, flag_unknown)


# ════════════════════════════════════════════════════════════════════════════════
# MAIN PARSER CLASS
# ════════════════════════════════════════════════════════════════════════════════


class RomajiNameParser:
    """Main Japanese name parsing service."""

    def __init__(
        self,
        config: Optional[RomajiNameConfig] = None,
        dictionary: Optional[NameDictionary] = None,
        transliterator: Optional[KanaTransliterator] = None,
    ):
        self._config = config or RomajiNameConfig.create_default()
        self._dictionary = dictionary or NameDictionary(self._config.dictionary_path, self._config.cache_dir)
        self._transliterator = transliterator or KanaTransliterator()
        self._accents = AccentNormalizer(self._config)
        self._splitter = KanjiSplitter(self._dictionary)
        self._composer = NameComposer(self._config, self._accents)
        self._initialized = False

    @property
    def config(self) -> RomajiNameConfig:
        return self._config

    @property
    def accents(self) -> AccentNormalizer:
        return self._accents

    @property
    def composer(self) -> NameComposer:
        return self._composer

    def init(self, settings_path: Optional[Path] = None) -> "RomajiNameParser":
        """Load the dictionary and the override lists. Safe to call more than once."""
        if self._initialized:
            return self
        self._dictionary.init()
        given, surname = load_settings(settings_path or self._config.settings_path)
        if given or surname:
            self._config = self._config.with_fixed_names(given, surname)
        self._initialized = True
        return self

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.init()

    def get_cache_info(self) -> CacheInfo:
        return self._dictionary.get_cache_info()

    def clear_cache(self) -> None:
        self._dictionary.clear_cache()

    def parse(self, text: str, options: Optional[ParseOptions] = None) -> NameRecord:
        """Parse raw attribution text."""
        options = options or ParseOptions()
        return self._run(NameRecord(original=text, options=options), options)

    def reparse(self, record: NameRecord, options: Optional[ParseOptions] = None) -> NameRecord:
        """Parse a previous record's original text again; its options are the defaults."""
        merged = (options or ParseOptions()).layered_over(record.options)
        return self._run(NameRecord(original=record.original, options=merged), merged)

    def merge(self, base: NameRecord, child: NameRecord) -> NameRecord:
        """
        Combine two parses of the same person. The base's generation and kanji never carry
        over; every populated field of the child wins.
        """
        merged = replace(base, generation=None, kanji=None, surname_kanji=None, given_kanji=None)
        overlay = {f.name: getattr(child, f.name) for f in fields(child) if getattr(child, f.name)}
        return self._composer.compose(replace(merged, **overlay))

    def _run(self, record: NameRecord, options: ParseOptions) -> NameRecord:
        self._ensure_initialized()
        ctx = ParseContext(
            config=self._config,
            accents=self._accents,
            dictionary=self._dictionary,
            transliterator=self._transliterator,
            splitter=self._splitter,
            composer=self._composer,
            options=options,
        )

        state = PipelineState(text=record.original, record=record)
        for stage in PIPELINE:
            state = stage(state, ctx)
            if state.done:
                break
        for stage in FINAL_STAGES:
            state = stage(state, ctx)
        return state.record


# ════════════════════════════════════════════════════════════════════════════════
# PERFORMANCE CHECK
# ════════════════════════════════════════════════════════════════════════════════


def run_performance_test() -> None:
    """Time repeated parses of a few common attributions."""
    parser = _get_global_parser()
    names = [
        "Utagawa Hiroshige",
        "Hiroshige Ando",
        "Utagawa Kunisada II (二代歌川国貞)",
        "Katsushika Hokusai (葛飾北斎)",
        "Oskar J. A. V. RIESENTHAL",
    ]

    iterations = 1000
    start_time = time.perf_counter()
    record = None
    for _ in range(iterations):
        for name in names:
            record = parser.parse(name)
    elapsed = time.perf_counter() - start_time

    per_name = elapsed / (iterations * len(names)) * 1_000_000
    print(f"Parsed {iterations * len(names)} names in {elapsed:.3f}s ({per_name:.1f} μs/name)")
    if record is not None:
        print(f"Last result: {record.name}")


# ════════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL CONVENIENCE FUNCTIONS
# ════════════════════════════════════════════════════════════════════════════════

# Global parser instance for module-level functions
_global_parser: Optional[RomajiNameParser] = None


def _get_global_parser() -> RomajiNameParser:
    """Get or create the global parser instance."""
    global _global_parser
    if _global_parser is None:
        _global_parser = RomajiNameParser().init()
    return _global_parser


def init(
    settings_path: Optional[Path] = None,
    dictionary: Optional[NameDictionary] = None,
    on_ready: Optional[Callable[[], None]] = None,
) -> RomajiNameParser:
    """
    Initialize the global parser: load the name dictionary and the settings document,
    then call `on_ready`. Repeated calls reuse the loaded parser unless a different
    dictionary is given.
    """
    global _global_parser
    if _global_parser is None or dictionary is not None:
        _global_parser = RomajiNameParser(dictionary=dictionary)
    _global_parser.init(settings_path)
    if on_ready is not None:
        on_ready()
    return _global_parser


def parse_name(text: str, options: Optional[Union[ParseOptions, Mapping[str, object]]] = None) -> NameRecord:
    if options is not None and not isinstance(options, ParseOptions):
        options = ParseOptions.from_mapping(options)
    return _get_global_parser().parse(text, options)


def reparse_name(record: NameRecord, options: Optional[ParseOptions] = None) -> NameRecord:
    return _get_global_parser().reparse(record, options)


def merge_names(base: NameRecord, child: NameRecord) -> NameRecord:
    return _get_global_parser().merge(base, child)


def clear_cache() -> None:
    """Delete the global dictionary cache file."""
    _get_global_parser().clear_cache()


def get_cache_info() -> Dict[str, Union[bool, int, float, None]]:
    """Get cache information as a dictionary."""
    cache_info = _get_global_parser().get_cache_info()
    return {
        "loaded": cache_info.loaded,
        "entry_count": cache_info.entry_count,
        "pickle_file_exists": cache_info.pickle_file_exists,
        "pickle_file_size": cache_info.pickle_file_size,
        "pickle_file_mtime": cache_info.pickle_file_mtime,
    }


# CLI entry point
if __name__ == "__main__":
    run_performance_test()
