from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lib_config_binder.domain.identifiers import identifiers_match, split_words

WORD = st.text(alphabet="abcdefghijklmnop", min_size=2, max_size=6)


@pytest.mark.parametrize("spelling", ["ThingOne", "thingOne", "thing-one", "thing_one", "thingone", "THINGONE", "Thing_One"])
def test_spellings_of_the_same_member_match(spelling: str) -> None:
    assert identifiers_match("ThingOne", spelling)


@pytest.mark.parametrize(("left", "right"), [("thing_one", "thing_two"), ("one", "thing_one"), ("max_size", "size_max")])
def test_different_identifiers_do_not_match(left: str, right: str) -> None:
    assert not identifiers_match(left, right)


def test_upper_case_runs_stay_together() -> None:
    assert split_words("parseHTTPResponse") == ["parse", "HTTP", "Response"]
    assert identifiers_match("parse_http_response", "parseHTTPResponse")


@given(st.lists(WORD, min_size=1, max_size=4))
def test_every_convention_of_the_same_words_matches(words: list[str]) -> None:
    snake = "_".join(words)
    kebab = "-".join(words)
    pascal = "".join(word.capitalize() for word in words)
    flat = "".join(words)
    for spelling in (kebab, pascal, flat, snake.upper()):
        assert identifiers_match(snake, spelling)


@given(WORD, WORD)
def test_matching_is_symmetric(left: str, right: str) -> None:
    assert identifiers_match(left, right) == identifiers_match(right, left)
