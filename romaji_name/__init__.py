from romaji_name.japanese_names import (
    Locale,
    NameRecord,
    ParseOptions,
    RomajiNameConfig,
    RomajiNameParser,
    clear_cache,
    get_cache_info,
    init,
    merge_names,
    parse_name,
    reparse_name,
)
from romaji_name.name_dictionary import DictionaryEntry, KanaTransliterator, NameDictionary

__all__ = [
    "DictionaryEntry",
    "KanaTransliterator",
    "Locale",
    "NameDictionary",
    "NameRecord",
    "ParseOptions",
    "RomajiNameConfig",
    "RomajiNameParser",
    "clear_cache",
    "get_cache_info",
    "init",
    "merge_names",
    "parse_name",
    "reparse_name",
]
