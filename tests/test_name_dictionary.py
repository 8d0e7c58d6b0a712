import os
import sys
from pathlib import Path

import pytest

# Add the parent directory to path to import romaji_name
sys.path.insert(0, str(Path(__file__).parent.parent))

from romaji_name.name_dictionary import (
    GIVEN,
    SURNAME,
    UNKNOWN,
    DictionaryEntry,
    KanaTransliterator,
    NameDictionary,
    romaji_key,
)

CSV_TEXT = """romaji,kana,kanji,type
utagawa,うたがわ,歌川,surname
hiroshige,ひろしげ,広重|廣重,given
toushuusai,とうしゅうさい,東洲斎,surname
shun'ei,しゅんえい,春英,given
sharaku,しゃらく,写楽,
,なし,無,given
"""


@pytest.fixture
def csv_source(tmp_path):
    source = tmp_path / "names.csv"
    source.write_text(CSV_TEXT, encoding="utf-8")
    return source


@pytest.fixture(scope="session")
def transliterator():
    return KanaTransliterator()


def test_romaji_key_collapses_spellings():
    assert romaji_key("Tōshūsai") == romaji_key("toushuusai") == romaji_key("Tooshuusai") == romaji_key("Toshusai")
    assert romaji_key("Shun'ei") == "shunei"
    assert romaji_key("Ōta") == romaji_key("oota")
    assert romaji_key("Inoue") == "inoue"


def test_load_from_csv(csv_source, tmp_path, caplog):
    dictionary = NameDictionary(csv_source, tmp_path / "cache")

    assert dictionary.init() is True
    assert dictionary.is_loaded

    hiroshige = dictionary.find("Hiroshige")
    assert hiroshige.kana == "ひろしげ"
    assert hiroshige.kanji == ("広重", "廣重")
    assert hiroshige.name_type == GIVEN
    assert dictionary.find_kanji("廣重") is hiroshige
    assert dictionary.find("Tōshūsai").name_type == SURNAME
    assert dictionary.find("Shunei").romaji == "shun'ei"
    assert dictionary.find("sharaku").name_type == UNKNOWN

    assert dictionary.find("Hokusai") is None
    assert dictionary.find("") is None
    assert dictionary.find_kanji("北斎") is None

    # The row without romaji is skipped
    assert dictionary.get_cache_info().entry_count == 5
    assert "Skipped 1 unreadable rows" in caplog.text


def test_pickle_cache_round_trip(csv_source, tmp_path, capsys):
    cache_dir = tmp_path / "cache"
    NameDictionary(csv_source, cache_dir).init()
    assert "Built name dictionary" in capsys.readouterr().out

    cached = NameDictionary(csv_source, cache_dir)
    cached.init()
    assert "Loaded name dictionary cache" in capsys.readouterr().out
    assert cached.find("utagawa").kanji == ("歌川",)

    cache_info = cached.get_cache_info()
    assert cache_info.loaded is True
    assert cache_info.pickle_file_exists is True
    assert cache_info.pickle_file_size > 0


def test_stale_cache_is_rebuilt(csv_source, tmp_path, capsys):
    cache_dir = tmp_path / "cache"
    NameDictionary(csv_source, cache_dir).init()
    capsys.readouterr()

    csv_source.write_text(CSV_TEXT + "hokusai,ほくさい,北斎,given\n", encoding="utf-8")
    stat = csv_source.stat()
    os.utime(csv_source, (stat.st_atime, stat.st_mtime + 10))

    dictionary = NameDictionary(csv_source, cache_dir)
    dictionary.init()

    assert "Built name dictionary" in capsys.readouterr().out
    assert dictionary.find("hokusai").kanji == ("北斎",)


def test_corrupt_cache_is_rebuilt(csv_source, tmp_path, caplog):
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    (cache_dir / NameDictionary.CACHE_FILENAME).write_bytes(b"not a pickle")

    dictionary = NameDictionary(csv_source, cache_dir)
    dictionary.init()

    assert "Failed to load name dictionary cache" in caplog.text
    assert dictionary.find("utagawa") is not None


def test_missing_source_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        NameDictionary(tmp_path / "missing.csv", tmp_path).init()


def test_clear_cache(csv_source, tmp_path):
    dictionary = NameDictionary(csv_source, tmp_path / "cache")
    dictionary.init()
    assert dictionary.get_cache_info().pickle_file_exists

    dictionary.clear_cache()

    assert not dictionary.get_cache_info().pickle_file_exists
    # Indexes survive the cache file
    assert dictionary.find("utagawa") is not None


def test_first_entry_wins():
    dictionary = NameDictionary.from_entries(
        [
            DictionaryEntry(romaji="kunisada", kana="くにさだ", kanji=("国貞",), name_type=GIVEN),
            DictionaryEntry(romaji="kunisada", kana="くにさだ", kanji=("国定",), name_type=SURNAME),
        ]
    )

    assert dictionary.find("kunisada").name_type == GIVEN
    assert dictionary.find_kanji("国定").name_type == SURNAME
    assert dictionary.get_cache_info().pickle_file_exists is False


CLEAN_ROMAJI_CASES = [
    ("Hutatu", "futatsu"),
    ("Sinzi", "shinji"),
    ("Tikamatu", "chikamatsu"),
    ("Syunsyo", "shunsho"),
    ("Shimbashi", "shinbashi"),
    ("Shun'ei", "shun'ei"),
    ("Shuusai", "shuusai"),
    ("Kiyo-naga!", "kiyo-naga"),
]


def test_clean_romaji(transliterator):
    for text, expected in CLEAN_ROMAJI_CASES:
        assert transliterator.clean_romaji(text) == expected, f"Failed for '{text}'"


def test_to_hiragana(transliterator):
    assert transliterator.to_hiragana("utagawa") == "うたがわ"
    assert transliterator.to_hiragana("hiroshige") == "ひろしげ"
    assert transliterator.to_hiragana("shun'ei")
    assert transliterator.to_hiragana("tori-jo")


def test_non_japanese_romaji_has_no_kana(transliterator):
    for text in ["riesenthal", "oskar", "charles", "bartlett", "lee", "xavier", "foujita", "v", ""]:
        assert transliterator.to_hiragana(text) == "", f"Failed for '{text}'"
