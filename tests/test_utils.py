import pytest

from cover_scout.utils import MAX_FILENAME_CHARS, sanitize_filename, shorten


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Sample Book", "Sample_Book"),
        ('What? A "Book": Part 1/2', "What_A_Book_Part_12"),
        ("  spaced \t out\nlines ", "_spaced_outlines_"),
        ("பொன்னியின் செல்வன்", "பொன்னியின்_செல்வன்"),
        ("<>|?*", "untitled"),
    ],
)
def test_sanitize_filename(title, expected):
    assert sanitize_filename(title) == expected


def test_sanitize_filename_truncates():
    assert len(sanitize_filename("x" * 500)) == MAX_FILENAME_CHARS


@pytest.mark.parametrize(
    "title",
    ["Sample Book", "a  b\x01c:d", "y " * 80, "", "already_clean"],
)
def test_sanitize_filename_is_idempotent(title):
    once = sanitize_filename(title)
    assert sanitize_filename(once) == once


def test_shorten():
    assert shorten("short") == "short"
    assert shorten("x" * 80, limit=10) == "x" * 10 + "..."
