"""
Name dictionary and kana transliteration collaborators.

The parser only ever reads from these two services:

- ``NameDictionary``: romanized and kanji lookups over a CSV name list
  (``romaji,kana,kanji,type``; alternative kanji spellings separated by ``|``).
  Indexes are immutable once loaded and cached to a pickle file next to the user cache.
- ``KanaTransliterator``: Hepburn romaji to hiragana via ``jaconv``, doubling as the
  "is this plausibly Japanese" test (an empty result means it is not).
"""

from __future__ import annotations
import csv
import logging
import pickle
import re
import time
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import jaconv

from romaji_name.japanese_names_data import HEPBURN_WORD_PATTERN, KUNREI_TO_HEPBURN

GIVEN = "given"
SURNAME = "surname"
UNKNOWN = "unknown"

_KEY_NOISE_PATTERN = re.compile(r"[^a-z]")
_KEY_OU_PATTERN = re.compile(r"ou(?![aeiou])")
_KEY_LONG_VOWEL_PATTERN = re.compile(r"([aeiou])\1+")


def romaji_key(text: str) -> str:
    """
    Lookup key for a romanized name.

    Accents are stripped, punctuation and spaces dropped, and long vowels collapsed so
    that "Tōshūsai", "Tooshuusai", "Toushuusai" and "Toshusai" share one key.
    """
    decomposed = unicodedata.normalize("NFKD", text.lower())
    letters = "".join(c for c in decomposed if not unicodedata.combining(c))
    key = _KEY_NOISE_PATTERN.sub("", letters)
    key = _KEY_OU_PATTERN.sub("o", key)
    return _KEY_LONG_VOWEL_PATTERN.sub(r"\1", key)


@dataclass(frozen=True)
class DictionaryEntry:
    """One dictionary reading: ASCII romaji (long vowels doubled), kana, kanji spellings."""

    romaji: str
    kana: str
    kanji: Tuple[str, ...] = ()
    name_type: str = UNKNOWN

    @property
    def is_given(self) -> bool:
        return self.name_type == GIVEN

    @property
    def is_surname(self) -> bool:
        return self.name_type == SURNAME


@dataclass(frozen=True)
class CacheInfo:
    """Immutable cache information structure."""

    loaded: bool
    entry_count: int
    pickle_file_exists: bool
    pickle_file_size: Optional[int] = None
    pickle_file_mtime: Optional[float] = None


# ════════════════════════════════════════════════════════════════════════════════
# NAME DICTIONARY
# ════════════════════════════════════════════════════════════════════════════════


class NameDictionary:
    """Read-only name dictionary indexed by romaji key and by kanji spelling."""

    CACHE_FILENAME = "name_dictionary.pkl"

    def __init__(self, source: Optional[Path] = None, cache_dir: Optional[Path] = None):
        self._source = source
        self._cache_dir = cache_dir
        self._by_romaji: Mapping[str, DictionaryEntry] = MappingProxyType({})
        self._by_kanji: Mapping[str, DictionaryEntry] = MappingProxyType({})
        self._entries: Tuple[DictionaryEntry, ...] = ()
        self._entry_count = 0
        self._loaded = False

    @classmethod
    def from_entries(cls, entries: Iterable[DictionaryEntry]) -> "NameDictionary":
        """Build an in-memory dictionary; no source file or cache is involved."""
        dictionary = cls()
        dictionary._index(tuple(entries))
        return dictionary

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def _cache_file(self) -> Optional[Path]:
        if self._cache_dir is None:
            return None
        return self._cache_dir / self.CACHE_FILENAME

    def init(self, force_rebuild: bool = False) -> bool:
        """Load the dictionary, preferring a fresh pickle cache. Returns True once loaded."""
        if self._loaded and not force_rebuild:
            return True
        if self._source is None:
            return self._loaded

        if not self._source.exists():
            raise FileNotFoundError(f"Name dictionary not found: {self._source}")

        cache_file = self._cache_file
        if cache_file is not None and cache_file.exists() and not force_rebuild:
            if self._load_from_pickle(cache_file):
                return True

        self._build_from_source()
        if cache_file is not None:
            self._save_to_pickle(cache_file)
        return True

    def _load_from_pickle(self, cache_file: Path) -> bool:
        """Load indexes from the pickle cache unless the source CSV is newer."""
        try:
            start_time = time.perf_counter()
            with cache_file.open("rb") as f:
                source_mtime, entries = pickle.load(f)
            if source_mtime != self._source.stat().st_mtime:
                logging.debug(f"Name dictionary cache is stale for {self._source}. Rebuilding...")
                return False
            self._index(entries)
            load_time = time.perf_counter() - start_time
            print(f"Loaded name dictionary cache with {self._entry_count} entries in {load_time:.3f}s")
            return True
        except (pickle.PickleError, OSError, EOFError, ValueError) as e:
            logging.warning(f"Failed to load name dictionary cache: {e}. Rebuilding...")
            return False

    def _build_from_source(self) -> None:
        start_time = time.perf_counter()
        entries: List[DictionaryEntry] = []
        skipped = 0

        with self._source.open(encoding="utf-8", newline="") as f:
            for row in csv.DictReader(f):
                entry = self._entry_from_row(row)
                if entry is None:
                    skipped += 1
                    continue
                entries.append(entry)

        if skipped:
            logging.warning(f"Skipped {skipped} unreadable rows while loading {self._source}")

        self._index(entries)
        build_time = time.perf_counter() - start_time
        print(f"Built name dictionary with {self._entry_count} entries in {build_time:.3f}s")

    def _entry_from_row(self, row: Dict[str, str]) -> Optional[DictionaryEntry]:
        romaji = (row.get("romaji") or "").strip().lower()
        if not romaji:
            return None
        kanji = tuple(k.strip() for k in (row.get("kanji") or "").split("|") if k.strip())
        name_type = (row.get("type") or "").strip().lower()
        if name_type not in (GIVEN, SURNAME):
            name_type = UNKNOWN
        return DictionaryEntry(romaji=romaji, kana=(row.get("kana") or "").strip(), kanji=kanji, name_type=name_type)

    def _save_to_pickle(self, cache_file: Path) -> None:
        try:
            cache_file.parent.mkdir(parents=True, exist_ok=True)
            with cache_file.open("wb") as f:
                pickle.dump((self._source.stat().st_mtime, self._entries), f, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PickleError, OSError) as e:
            logging.warning(f"Failed to save name dictionary cache: {e}")

    def _index(self, entries: Sequence[DictionaryEntry]) -> None:
        # First entry wins for both indexes
        by_romaji: Dict[str, DictionaryEntry] = {}
        by_kanji: Dict[str, DictionaryEntry] = {}
        for entry in entries:
            by_romaji.setdefault(romaji_key(entry.romaji), entry)
            for spelling in entry.kanji:
                by_kanji.setdefault(spelling, entry)
        self._by_romaji = MappingProxyType(by_romaji)
        self._by_kanji = MappingProxyType(by_kanji)
        self._entries = tuple(entries)
        self._entry_count = len(entries)
        self._loaded = True

    def find(self, romaji: str) -> Optional[DictionaryEntry]:
        """Entry for a romanized name, in any accent or long-vowel spelling."""
        if not romaji:
            return None
        return self._by_romaji.get(romaji_key(romaji))

    def find_kanji(self, text: str) -> Optional[DictionaryEntry]:
        """Entry with an exact kanji spelling match."""
        if not text:
            return None
        return self._by_kanji.get(text)

    def get_cache_info(self) -> CacheInfo:
        cache_file = self._cache_file
        info = {
            "loaded": self._loaded,
            "entry_count": self._entry_count,
            "pickle_file_exists": bool(cache_file and cache_file.exists()),
        }
        if cache_file is not None and cache_file.exists():
            try:
                stat = cache_file.stat()
                info["pickle_file_size"] = stat.st_size
                info["pickle_file_mtime"] = stat.st_mtime
            except OSError:
                pass
        return CacheInfo(**info)

    def clear_cache(self) -> None:
        """Delete the pickle cache; the in-memory indexes stay usable."""
        cache_file = self._cache_file
        if cache_file is not None and cache_file.exists():
            try:
                cache_file.unlink()
            except OSError as e:
                logging.warning(f"Could not delete name dictionary cache: {e}")


# ════════════════════════════════════════════════════════════════════════════════
# KANA TRANSLITERATION
# ════════════════════════════════════════════════════════════════════════════════


class KanaTransliterator:
    """Hepburn romaji to hiragana."""

    def __init__(self):
        self._hepburn_word = re.compile(HEPBURN_WORD_PATTERN)
        self._boundary = re.compile(r"['\-\s]+")
        self._non_romaji = re.compile(r"[^a-z'\-\s]")
        self._not_hiragana = re.compile(r"[^ぁ-ゟー]")
        self._kunrei_rules = tuple((re.compile(pattern), replacement) for pattern, replacement in KUNREI_TO_HEPBURN)
        self._labial_m = re.compile(r"m(?=[bp])")

    def clean_romaji(self, text: str) -> str:
        """Lowercase, drop non-romaji characters and rewrite Kunrei spellings to Hepburn."""
        cleaned = self._non_romaji.sub("", text.lower())
        for pattern, replacement in self._kunrei_rules:
            cleaned = pattern.sub(replacement, cleaned)
        return self._labial_m.sub("n", cleaned)

    def to_hiragana(self, romaji: str) -> str:
        """
        Transliterate ASCII romaji to hiragana.

        Apostrophes, hyphens and spaces are syllable boundaries ("shun'ei" is
        shun + ei). Returns "" when any word is not Hepburn or anything but
        hiragana would remain.
        """
        segments = [s for s in self._boundary.split(romaji.lower()) if s]
        if not segments:
            return ""
        if not all(self._hepburn_word.match(segment) for segment in segments):
            return ""
        kana = "".join(jaconv.alphabet2kana(segment) for segment in segments)
        if self._not_hiragana.search(kana):
            return ""
        return kana
