"""Tests for tag normalization and equivalence."""

import pytest

from memobot.utils.tag_similarity import (
    levenshtein,
    normalize_tag_name,
    string_similarity,
    tags_equivalent,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("  Projects ", "project"),
        ("Categories", "category"),
        ("boxes", "box"),
        ("follow-up", "followup"),
        ("to_do_items", "todoitem"),
        ("class", "class"),
        ("bus", "bus"),
    ],
)
def test_normalize_tag_name(raw, expected):
    assert normalize_tag_name(raw) == expected


def test_levenshtein():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("same", "same") == 0


def test_string_similarity():
    assert string_similarity("", "") == 1.0
    assert string_similarity("abcd", "abce") == pytest.approx(0.75)


@pytest.mark.parametrize(
    "a,b",
    [
        ("project", "projects"),
        ("Meeting", "mtg"),
        ("documents", "docs"),
        ("follow-up", "followup"),
        ("recipe", "recipes"),
        ("birthday", "birthdy"),
        ("team meeting", "team-meetings"),
    ],
)
def test_equivalent_tags(a, b):
    assert tags_equivalent(a, b)
    assert tags_equivalent(b, a)


@pytest.mark.parametrize(
    "a,b",
    [
        ("work", "home"),
        ("cat", "car"),
        ("company", "cooking"),
        ("travel", "gravel pit"),
        ("", "travel"),
    ],
)
def test_distinct_tags(a, b):
    assert not tags_equivalent(a, b)
