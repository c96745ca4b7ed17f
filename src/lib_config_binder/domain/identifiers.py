"""Identifier matching across naming conventions.

Configuration keys arrive in whatever spelling the file author preferred
(``ThingOne``, ``thingOne``, ``thing-one``, ``thing_one``, ``thingone``) while
Python members are usually ``snake_case``. :func:`identifiers_match` decides
whether two spellings name the same thing:

1. a plain case-insensitive comparison;
2. otherwise both names are split into words (on ``_``, else on ``-``, else at
   camel-case boundaries keeping upper-case runs such as ``HTTP`` together)
   and the word lists are compared case-insensitively;
3. a single-word name also matches when it equals the concatenation of the
   other name's words.

No hash can honour rule 3, so callers compare keys one by one.
"""

from __future__ import annotations


def split_words(identifier: str) -> list[str]:
    """Split *identifier* into words.

    Examples
    --------
    >>> split_words("thing_one")
    ['thing', 'one']
    >>> split_words("thing-one")
    ['thing', 'one']
    >>> split_words("ThingOne")
    ['Thing', 'One']
    >>> split_words("HTTPServerURL")
    ['HTTP', 'Server', 'URL']
    >>> split_words("thingone")
    ['thingone']
    """

    if "_" in identifier:
        return identifier.split("_")
    if "-" in identifier:
        return identifier.split("-")

    words: list[str] = []
    index = 0
    length = len(identifier)
    while index < length:
        if index <= length - 2 and identifier[index].isupper() and identifier[index + 1].isupper():
            end = index
            while end < length and identifier[end].isupper():
                end += 1
            if end < length:
                # the last capital of the run starts the next word
                end -= 1
            words.append(identifier[index:end])
            index = end
        else:
            end = index + 1
            while end < length and not identifier[end].isupper():
                end += 1
            words.append(identifier[index:end])
            index = end
    return words


def identifiers_match(left: str, right: str) -> bool:
    """Return ``True`` when *left* and *right* name the same identifier.

    Examples
    --------
    >>> all(identifiers_match("ThingOne", key) for key in ("thingOne", "thing-one", "thing_one", "thingone"))
    True
    >>> identifiers_match("thing_one", "thing_two")
    False
    """

    if left.casefold() == right.casefold():
        return True

    left_words = split_words(left)
    right_words = split_words(right)
    if len(left_words) == len(right_words):
        return all(a.casefold() == b.casefold() for a, b in zip(left_words, right_words))
    if len(left_words) == 1 and left_words[0].casefold() == "".join(right_words).casefold():
        return True
    if len(right_words) == 1 and right_words[0].casefold() == "".join(left_words).casefold():
        return True
    return False
