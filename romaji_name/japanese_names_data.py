# ═════════════════════════════════════════════════════════════════════════════════
# STATIC TABLES FOR JAPANESE NAME PARSING
# ═════════════════════════════════════════════════════════════════════════════════
#
# Everything here is plain data. The parser derives its lookup tables and compiled
# patterns from these once, in RomajiNameConfig.create_default(), and never mutates
# them afterwards.
# ═════════════════════════════════════════════════════════════════════════════════

from types import MappingProxyType

# Base accent table: each vowel mapped to the diacritic variants seen in catalog data.
# The FIRST variant of each entry is the canonical (Hepburn macron) form.
LETTER_TO_ACCENTS = MappingProxyType(
    {
        "a": "āáàăâäãåą",
        "A": "ĀÁÀĂÂÄÃÅ",
        "e": "ēéèêěëėę",
        "E": "ĒÉÈÊËĚ",
        "i": "īíìîïį",
        "I": "ĪÍÌÎÏİ",
        "o": "ōóòôöőõøỏ",
        "O": "ŌÓÒÔÖŐÕ",
        "u": "ūúùŭûůüųű",
        "U": "ŪÚÙÛÜŮ",
    }
)

# Known-bad romanizations, applied in order. "ou" before another vowel is a syllable
# boundary (Inoue), not a long vowel.
BAD_ROMAJI = (
    (r"ou(?![aeiou])", "oo"),
    (r"si", "shi"),
)

# Kunrei/Nihon-shiki spellings rewritten to Hepburn by the transliterator.
KUNREI_TO_HEPBURN = (
    (r"(?<![cs])hu", "fu"),
    (r"si", "shi"),
    (r"ti", "chi"),
    (r"(?<!t)tu", "tsu"),
    (r"zi", "ji"),
    (r"sy", "sh"),
    (r"ty", "ch"),
    (r"zy", "j"),
)

# One romanized word made only of Hepburn morae: (onset) vowel, "fu" (Hepburn has no
# other f- syllable), moraic n, the traditional "m" before labials, and geminate consonants.
HEPBURN_WORD_PATTERN = (
    r"^(?:"
    r"(?:ky|gy|sh|ch|ts|ny|hy|by|py|my|ry|j|[kgsztdnhbpmrwy])?[aeiou]"
    r"|fu"
    r"|n(?![aeiouy])"
    r"|m(?=[bpm])"
    r"|([kgsztdhbpfjcr])(?=\1)"
    r"|t(?=ch)"
    r")+$"
)

# ─────────────────────────────────────────────────────────────────────────────────
# Generations
# ─────────────────────────────────────────────────────────────────────────────────

# Index 0 is generation 1. Kanji numerals list the canonical form first, then the
# historical/financial variants (daiji).
GENERATION_KANJI = (
    "一壱壹",
    "二弐貳貮",
    "三参參",
    "四肆",
    "五伍",
    "六陸",
    "七漆柒質",
    "八捌",
    "九玖",
    "十拾",
)

GENERATION_ROMAN = ("I", "II", "III", "IV", "V", "VI", "VII", "VIII", "IX", "X")

GENERATION_FULLWIDTH = ("１", "２", "３", "４", "５", "６", "７", "８", "９", "１０")

# Romanized ordinal words, without the optional "me" ending for 1 ("shodai").
GENERATION_WORDS = (
    ("shodai", "ichidaime"),
    ("nidaime",),
    ("sandaime",),
    ("yondaime", "yodaime"),
    ("godaime",),
    ("rokudaime",),
    ("nanadaime", "shichidaime"),
    ("hachidaime",),
    ("kyuudaime", "kyudaime", "kudaime"),
    ("juudaime", "judaime"),
)

GENERATION_SUFFIXES = ("代目", "代", "世")

# Appended to a composed kanji name: 二代
KANJI_GENERATION_MARKER = "代"

# ─────────────────────────────────────────────────────────────────────────────────
# Flags and stop words
# ─────────────────────────────────────────────────────────────────────────────────

UNKNOWN_MARKERS = (
    "unknown",
    "anonymous",
    "unidentified",
    "not identified",
    "unsigned",
    "artist unknown",
)

UNKNOWN_KANJI_MARKERS = ("作者不詳", "不詳", "不明", "無款")

AFTER_MARKERS = (
    "after",
    "imitator of",
    "follower of",
    "circle of",
    "manner of",
    "in the style of",
    "style of",
    "copy after",
)

ATTRIBUTED_MARKERS = ("attributed to", "attributed", "attr")

STOP_WORDS = frozenset(
    {
        "artist",
        "by",
        "calligrapher",
        "designer",
        "painter",
        "printmaker",
        "seal",
        "sealed",
        "signed",
        "the",
    }
)

# Lowercase particles kept as written inside a composed name.
NAME_PARTICLES = frozenset({"no"})

# ─────────────────────────────────────────────────────────────────────────────────
# Composition
# ─────────────────────────────────────────────────────────────────────────────────

LOCALE_TEMPLATES = MappingProxyType(
    {
        "japanese": ("surname", "middle", "given", "generation"),
        "other": ("given", "middle", "surname", "generation"),
    }
)
