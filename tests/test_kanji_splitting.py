import sys
from pathlib import Path

import pytest

# Add the parent directory to path to import romaji_name
sys.path.insert(0, str(Path(__file__).parent.parent))

from romaji_name.japanese_names import KanjiSplit, KanjiSplitter, split_by_readings
from romaji_name.name_dictionary import DictionaryEntry, NameDictionary

ENTRIES = [
    DictionaryEntry(romaji="utagawa", kana="うたがわ", kanji=("歌川",), name_type="surname"),
    DictionaryEntry(romaji="hiroshige", kana="ひろしげ", kanji=("広重", "廣重"), name_type="given"),
    DictionaryEntry(romaji="hanjirou", kana="はんじろう", kanji=("繁二郎",), name_type="given"),
    DictionaryEntry(romaji="shoukosai", kana="しょうこさい", kanji=("松好斎",), name_type="surname"),
    DictionaryEntry(romaji="hanbei", kana="はんべえ", kanji=("半兵衛",), name_type="given"),
    DictionaryEntry(romaji="toushuusai", kana="とうしゅうさい", kanji=("東洲斎",), name_type="surname"),
    DictionaryEntry(romaji="katsushika", kana="かつしか", kanji=("葛飾",), name_type="surname"),
    DictionaryEntry(romaji="kitagawa", kana="きたがわ", kanji=("喜多川",), name_type="surname"),
    DictionaryEntry(romaji="utamaro", kana="うたまろ", kanji=("歌麿",), name_type="given"),
    DictionaryEntry(romaji="kita", kana="きた", kanji=("喜多",), name_type="surname"),
    DictionaryEntry(romaji="kawautamaro", kana="かわうたまろ", kanji=("川歌麿",), name_type="given"),
    DictionaryEntry(romaji="matsuyoshi", kana="まつよし", kanji=("松好",), name_type="surname"),
    DictionaryEntry(romaji="saihanbei", kana="さいはんべえ", kanji=("斎半兵衛",), name_type="given"),
]

SPLIT_CASES = [
    # Two characters or fewer: given name
    ("広重", KanjiSplit(surname=None, given="広重")),
    ("北", KanjiSplit(surname=None, given="北")),
    # Three characters in the dictionary: given name
    ("繁二郎", KanjiSplit(surname=None, given="繁二郎")),
    # Four characters always split evenly
    ("歌川広重", KanjiSplit(surname="歌川", given="広重")),
    ("山田太郎", KanjiSplit(surname="山田", given="太郎")),
    # Two equally even complete splits: the earlier one wins
    ("喜多川歌麿", KanjiSplit(surname="喜多", given="川歌麿")),
    # Two complete splits: the more even one wins
    ("松好斎半兵衛", KanjiSplit(surname="松好斎", given="半兵衛")),
    # Only one half known, halves equal
    ("東洲斎未知名", KanjiSplit(surname="東洲斎", given="未知名")),
    ("未知名半兵衛", KanjiSplit(surname="未知名", given="半兵衛")),
]

UNSPLIT_CASES = [
    "山本太",  # three characters, not a known name
    "葛飾未知名",  # one known half but uneven
    "未知未知名",  # nothing known
]


@pytest.fixture(scope="session")
def splitter():
    return KanjiSplitter(NameDictionary.from_entries(ENTRIES))


def test_kanji_splits(splitter):
    passed = 0
    failed = 0
    for kanji, expected in SPLIT_CASES:
        result = splitter.split(kanji)
        if result == expected:
            passed += 1
        else:
            failed += 1
            print(f"FAILED: '{kanji}': expected {expected}, got {result}")

    assert failed == 0, f"Kanji split tests: {failed} failures out of {len(SPLIT_CASES)} tests"
    print(f"Kanji split tests: {passed} passed, {failed} failed")


def test_ambiguous_kanji_stays_unsplit(splitter):
    for kanji in UNSPLIT_CASES:
        assert splitter.split(kanji) is None, f"Failed for '{kanji}'"


def test_split_by_readings():
    utagawa, hiroshige = ENTRIES[0], ENTRIES[1]

    assert split_by_readings("歌川廣重", utagawa, None) == KanjiSplit(surname="歌川", given="廣重")
    assert split_by_readings("歌川廣重", None, hiroshige) == KanjiSplit(surname="歌川", given="廣重")
    assert split_by_readings("廣重", None, hiroshige) == KanjiSplit(surname=None, given="廣重")
    # A surname reading that is the whole name does not split it
    assert split_by_readings("歌川", utagawa, None) is None
    assert split_by_readings("葛飾北斎", utagawa, hiroshige) is None
