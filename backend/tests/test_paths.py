"""Tests for the path codec: keys, rebasing, slugs, validation."""

import pytest

from localdrive.exceptions import ValidationError
from localdrive.utils.paths import (
    decode,
    encode,
    is_reserved,
    is_within,
    rebase,
    slugify,
    split_extension,
    unique_name,
    validate_name,
    validate_path,
)


class TestEncoding:
    def test_root_is_empty_key(self):
        assert encode([]) == ""
        assert decode("") == []

    def test_roundtrip(self):
        assert decode(encode(["Docs", "Work"])) == ["Docs", "Work"]

    def test_within_is_segment_wise(self):
        assert is_within("Docs", "Docs")
        assert is_within("Docs/Work", "Docs")
        assert not is_within("Docs2", "Docs")
        assert not is_within("Docs2/Work", "Docs")


class TestRebase:
    def test_replaces_prefix_and_keeps_suffix(self):
        assert rebase(["A", "B", "C"], ["A"], ["X", "A"]) == ["X", "A", "B", "C"]

    def test_to_root(self):
        assert rebase(["X", "A", "B"], ["X", "A"], ["A"]) == ["A", "B"]

    def test_rejects_string_prefix_match(self):
        with pytest.raises(ValueError):
            rebase(["Docs2", "B"], ["Docs"], ["X"])


class TestSlugify:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("My Documents", "my-documents"),
            ("  spaced   out  ", "spaced-out"),
            ("snake_case_name", "snake-case-name"),
            ("report (final).pdf", "report-final.pdf"),
            ("--a--b--", "a-b"),
            ("", ""),
            ("!!!", ""),
        ],
    )
    def test_known_values(self, text, expected):
        assert slugify(text) == expected

    @pytest.mark.parametrize(
        "text",
        ["Hello World", "a _ b", "Ünïcödé Fïlé", "x--y__z", "  -_- ", "tab\tand\nnewline", "a.b.c"],
    )
    def test_idempotent(self, text):
        once = slugify(text)
        assert slugify(once) == once


class TestValidation:
    def test_name_is_stripped(self):
        assert validate_name("  notes.txt ") == "notes.txt"

    @pytest.mark.parametrize("name", ["", "   ", "a/b", ".", ".."])
    def test_bad_names(self, name):
        with pytest.raises(ValidationError):
            validate_name(name)

    @pytest.mark.parametrize("path", [[""], [" "], ["a/b"], [".."], ["ok", " padded "]])
    def test_bad_paths(self, path):
        with pytest.raises(ValidationError):
            validate_path(path)

    def test_string_path_rejected(self):
        with pytest.raises(ValidationError):
            validate_path("Docs")

    def test_reserved(self):
        assert is_reserved(["Starred"])
        assert is_reserved(["Trash", "x"])
        assert not is_reserved([])
        assert not is_reserved(["Docs", "Starred"])

    def test_split_extension(self):
        assert split_extension("archive.tar.gz") == "gz"
        assert split_extension("Makefile") == ""

    def test_unique_name(self):
        taken: set[str] = set()
        assert unique_name("r.txt", taken) == "r.txt"
        assert unique_name("R.TXT", taken) == "R (1).TXT"
        assert unique_name("r.txt", taken) == "r (2).txt"
        assert unique_name(".env", taken) == ".env"
        assert unique_name(".env", taken) == ".env (1)"
