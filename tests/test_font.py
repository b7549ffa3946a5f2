import pytest

from evacap.font import FONT, GLYPH_SIZE, glyph, glyph_index


@pytest.mark.parametrize(
    "character, index",
    [("A", 1), ("Z", 26), ("0", 27), ("9", 36)],
)
def test_glyph_index_ranges(character, index):
    assert glyph_index(character) == index


@pytest.mark.parametrize("character", ["a", "?", " ", "\u00e9"])
def test_unknown_characters_are_blank(character):
    assert glyph_index(character) == 0
    assert glyph(character) == bytes(GLYPH_SIZE)


def test_integer_code_points_are_accepted():
    assert glyph_index(ord("B")) == glyph_index("B")
    assert glyph(ord("7")) == glyph("7")


def test_glyph_a_matches_table():
    assert glyph("A") == bytes([0x78, 0x14, 0x12, 0x11, 0x12, 0x14, 0x78, 0x00])


def test_glyph_nine_matches_table():
    assert glyph("9") == bytes([0x06, 0x09, 0x09, 0x09, 0x09, 0x09, 0x7F, 0x00])


def test_every_glyph_has_eight_columns_and_is_in_table():
    for ch in "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789":
        g = glyph(ch)
        assert len(g) == GLYPH_SIZE
        assert g in FONT


def test_indices_are_distinct():
    chars = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    indices = [glyph_index(c) for c in chars]
    assert len(set(indices)) == len(chars)
    assert max(indices) * GLYPH_SIZE + GLYPH_SIZE == len(FONT)


def test_multi_character_string_rejected():
    with pytest.raises(ValueError):
        glyph_index("AB")