"""Property checks: values written into a tree come back out of ``bind`` unchanged."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from binder_models import Access, Color, Endpoint, Settings
from lib_config_binder import MemoryConfiguration, bind

TEXT = st.text(alphabet=st.characters(blacklist_categories=("Cs",), blacklist_characters=":"), min_size=1, max_size=12)
KEY = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=8).filter(
    lambda key: key not in {"type", "value"}
)

ENDPOINTS = st.builds(Endpoint, host=TEXT, port=st.integers(min_value=1, max_value=65535), secure=st.booleans())


@st.composite
def settings(draw: st.DrawFn) -> Settings:
    return Settings(
        name=draw(TEXT),
        retries=draw(st.integers(min_value=-(2**40), max_value=2**40)),
        ratio=draw(st.floats(allow_nan=False, allow_infinity=False)),
        enabled=draw(st.booleans()),
        color=draw(st.sampled_from(Color)),
        access=Access(draw(st.integers(min_value=0, max_value=7))),
        endpoints=draw(st.lists(ENDPOINTS, min_size=1, max_size=4)),
        labels=draw(st.dictionaries(KEY, TEXT, min_size=1, max_size=4)),
        primary=draw(st.none() | ENDPOINTS),
    )


def render(value: Settings) -> dict[str, object]:
    tree: dict[str, object] = {
        "name": value.name,
        "retries": value.retries,
        "ratio": repr(value.ratio),
        "enabled": value.enabled,
        "color": value.color.name,
        "access": str(value.access.value),
        "endpoints": [vars(endpoint) for endpoint in value.endpoints],
        "labels": value.labels,
    }
    if value.primary is not None:
        tree["primary"] = vars(value.primary)
    return tree


@given(settings())
def test_settings_survive_a_trip_through_the_tree(value: Settings) -> None:
    assert bind(MemoryConfiguration(render(value)), Settings) == value


@given(st.lists(st.integers(), max_size=6))
def test_int_lists_survive(values: list[int]) -> None:
    config = MemoryConfiguration({"values": values})
    assert bind(config.get_section("values"), list[int]) == values
