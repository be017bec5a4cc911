import pytest

from farebot.airports import DIRECTORY, AirportDirectory, UnresolvedCityError


def test_resolve_exact_key():
    assert DIRECTORY.resolve("бангкок") == (["BKK"], "Бангкок")


def test_resolve_is_idempotent():
    first = DIRECTORY.resolve("париж")
    for _ in range(5):
        assert DIRECTORY.resolve("париж") == first
    assert first == (["CDG", "ORY"], "Париж (Шарль-де-Голль)")


def test_resolve_normalizes_case_and_whitespace():
    assert DIRECTORY.resolve("  Бангкок \n") == (["BKK"], "Бангкок")
    assert DIRECTORY.resolve("НЬЮ-ЙОРК") == (["JFK", "LGA", "EWR"], "Нью-Йорк (Кеннеди)")


def test_resolve_typo_key_for_tokyo():
    assert DIRECTORY.resolve("той") == (["NRT", "HND"], "Токио (Нарита)")


def test_resolve_tokyo_by_name_is_not_found():
    # only the typo key "той" exists, and neither string contains the other
    with pytest.raises(UnresolvedCityError):
        DIRECTORY.resolve("токио")


def test_substring_fallback_stem():
    codes, name = DIRECTORY.resolve("москвы")
    assert codes == ["SVO", "DME", "VKO"]
    assert name == "Москва (Шереметьево)"


def test_substring_fallback_false_positive():
    # "дел" (Delhi) is a substring of "аделаида"
    assert DIRECTORY.resolve("аделаида") == (["DEL"], "Дели")


def test_substring_scan_uses_sorted_key_order():
    directory = AirportDirectory(
        {"лон": ["AAA"], "ло": ["BBB"], "лондон": ["LHR"]},
        {"AAA": "A", "BBB": "B", "LHR": "London"},
    )
    # both "ло" and "лон" are substrings; "ло" sorts first
    assert directory.resolve("лонд") == (["BBB"], "B")
    assert directory.resolve("лондон") == (["LHR"], "London")


def test_input_inside_key_matches():
    assert DIRECTORY.resolve("сингап") == (["SIN"], "Сингапур")


def test_resolve_empty_input():
    with pytest.raises(UnresolvedCityError):
        DIRECTORY.resolve("   ")


def test_resolve_unknown():
    with pytest.raises(UnresolvedCityError) as err:
        DIRECTORY.resolve("атлантида")
    assert err.value.text == "атлантида"


def test_resolve_origin_exact_only():
    assert DIRECTORY.resolve_origin("Новосибирск") == (["OVB"], "Новосибирск")
    with pytest.raises(UnresolvedCityError):
        DIRECTORY.resolve_origin("москвы")


def test_resolve_code():
    assert DIRECTORY.resolve_code("bkk") == ("BKK", "Бангкок")
    assert DIRECTORY.resolve_code(" XYZ ") == ("XYZ", "XYZ")
    assert DIRECTORY.resolve_code("рим") is None
    assert DIRECTORY.resolve_code("BKKK") is None


def test_display_name_falls_back_to_code():
    assert DIRECTORY.display_name("dps") == "Денпасар (Бали)"
    assert DIRECTORY.display_name("QQQ") == "QQQ"


def test_city_list():
    lines = DIRECTORY.city_list().splitlines()
    assert "BKK - Бангкок" in lines
    assert "OVB - Новосибирск" in lines
    assert lines == sorted(lines)
    # "бали" and "денпасар" share DPS
    assert sum(1 for line in lines if line.startswith("DPS ")) == 1


def test_empty_code_list_rejected():
    with pytest.raises(ValueError):
        AirportDirectory({"пусто": []}, {})
