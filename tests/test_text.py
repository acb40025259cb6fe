"""Tests for text normalization."""

from semantic_index.text import MAX_TEXT_LENGTH, normalize_text


def test_collapses_whitespace_and_trims() -> None:
    assert normalize_text("  loamy \t soil\n\nwith   clay  ") == "loamy soil with clay"


def test_strips_characters_outside_allow_list() -> None:
    assert normalize_text("pH: 6.8 (good)! N=45ppm, P@28?") == "pH 6.8 good! N45ppm, P28?"


def test_keeps_hyphen_period_comma_and_marks() -> None:
    text = "well-drained, sandy loam. Irrigate? Yes!"
    assert normalize_text(text) == text


def test_removed_symbol_between_spaces_leaves_one_space() -> None:
    assert normalize_text("nitrogen & phosphorus") == "nitrogen phosphorus"


def test_truncates_silently() -> None:
    result = normalize_text("a" * (MAX_TEXT_LENGTH + 100))
    assert len(result) == MAX_TEXT_LENGTH


def test_truncation_on_a_space_does_not_leave_trailing_space() -> None:
    text = "x" * (MAX_TEXT_LENGTH - 1) + " tail"
    result = normalize_text(text)
    assert not result.endswith(" ")
    assert normalize_text(result) == result


def test_empty_and_symbol_only_input() -> None:
    assert normalize_text("") == ""
    assert normalize_text("   ") == ""
    assert normalize_text("@#$%^&*") == ""


def test_normalization_is_idempotent() -> None:
    samples = [
        "Soil temperature should reach 60°F consistently.",
        "  Nitrate   8.5 mg/L , pH 7.2 ;; minimal  contamination  ",
        "tabs\tand\nnewlines\r\n and   & symbols * here",
        "word " * 200,
        "ünïcode wörds — with dashes – and “quotes”",
        "",
    ]
    for sample in samples:
        once = normalize_text(sample)
        assert normalize_text(once) == once
