"""
Unit tests for models.filter module.

Tests:
- Filter construction, freezing and validation
- to_dict() / from_dict() wire format
- matches_nothing for empty constraint lists
- matches() NIP-01 semantics
"""

import pytest

from conftest import PUBKEY, event_id, make_event
from relaycache.models import EventKind, Filter


class TestFilterConstruction:
    """Filter field handling."""

    def test_defaults_unconstrained(self) -> None:
        """An empty filter constrains nothing."""
        f = Filter()
        assert f.kinds is None
        assert f.to_dict() == {}
        assert not f.matches_nothing

    def test_lists_frozen_to_tuples(self) -> None:
        """Converts list fields to tuples."""
        f = Filter(kinds=[1, 7], ids=[event_id(1)], tags={"e": ["x"]})
        assert f.kinds == (1, 7)
        assert f.ids == (event_id(1),)
        assert f.tags["e"] == ("x",)

    def test_tags_read_only(self) -> None:
        """The tag mapping cannot be mutated after construction."""
        f = Filter(tags={"e": ["x"]})
        with pytest.raises(TypeError):
            f.tags["p"] = ("y",)  # type: ignore[index]

    def test_enum_kinds_become_plain_ints(self) -> None:
        """IntEnum kinds are stored as plain ints."""
        f = Filter(kinds=[EventKind.LONGFORM])
        assert type(f.kinds[0]) is int  # type: ignore[index]
        assert f.to_dict() == {"kinds": [30023]}

    def test_multi_letter_tag_rejected(self) -> None:
        """Tag filter names must be one letter."""
        with pytest.raises(ValueError, match="single letter"):
            Filter(tags={"ee": ["x"]})

    def test_single_string_rejected(self) -> None:
        """A bare string is not accepted as a list of ids."""
        with pytest.raises(TypeError, match="list of strings"):
            Filter(ids=event_id(1))  # type: ignore[arg-type]

    def test_negative_since_rejected(self) -> None:
        """Timestamps must be non-negative."""
        with pytest.raises(ValueError, match="since"):
            Filter(since=-1)

    def test_kind_out_of_range(self) -> None:
        """Kinds above 65535 are rejected."""
        with pytest.raises(ValueError):
            Filter(kinds=[70000])


class TestFilterWireFormat:
    """Filter.to_dict() and Filter.from_dict()."""

    def test_to_dict_omits_unset_fields(self) -> None:
        """Only constrained fields are rendered."""
        f = Filter(kinds=[1], tags={"e": ["x"]}, since=100, limit=5)
        assert f.to_dict() == {"kinds": [1], "#e": ["x"], "since": 100, "limit": 5}

    def test_to_dict_keeps_empty_lists(self) -> None:
        """Empty lists are rendered, not dropped."""
        assert Filter(kinds=[1], tags={"e": []}).to_dict() == {"kinds": [1], "#e": []}

    def test_from_dict_reads_tag_keys(self) -> None:
        """#x keys become tag constraints."""
        f = Filter.from_dict({"kinds": [7], "#e": ["x"], "#a": ["y"], "limit": 3, "foo": 1})
        assert f.kinds == (7,)
        assert dict(f.tags) == {"e": ("x",), "a": ("y",)}
        assert f.limit == 3

    def test_from_dict_to_dict(self) -> None:
        """Parsing a rendered filter yields an equal filter."""
        f = Filter(kinds=[1], authors=[PUBKEY], tags={"a": ["30023:x:y"]}, until=500)
        assert Filter.from_dict(f.to_dict()) == f


class TestFilterMatchesNothing:
    """Filter.matches_nothing."""

    @pytest.mark.parametrize(
        "f",
        [
            Filter(kinds=[]),
            Filter(ids=[]),
            Filter(authors=[]),
            Filter(kinds=[1], tags={"e": []}),
            Filter(limit=0),
        ],
    )
    def test_unsatisfiable(self, f: Filter) -> None:
        """Any empty constraint list makes the filter unsatisfiable."""
        assert f.matches_nothing

    def test_satisfiable(self) -> None:
        """Non-empty constraints are satisfiable."""
        assert not Filter(kinds=[1], tags={"e": ["x"]}, limit=10).matches_nothing


class TestFilterMatches:
    """Filter.matches() semantics."""

    def test_kind(self) -> None:
        """Matches by kind."""
        assert Filter(kinds=[1]).matches(make_event(kind=1))
        assert not Filter(kinds=[7]).matches(make_event(kind=1))

    def test_ids_and_authors(self) -> None:
        """Matches by id and author."""
        event = make_event(3)
        assert Filter(ids=[event_id(3)], authors=[PUBKEY]).matches(event)
        assert not Filter(ids=[event_id(4)]).matches(event)
        assert not Filter(authors=["ef" * 32]).matches(event)

    def test_time_bounds_inclusive(self) -> None:
        """since and until are inclusive."""
        event = make_event(created_at=1000)
        assert Filter(since=1000, until=1000).matches(event)
        assert not Filter(since=1001).matches(event)
        assert not Filter(until=999).matches(event)

    def test_tag_any_of(self) -> None:
        """A tag constraint matches if any value is present."""
        event = make_event(tags=[["e", "b"]])
        assert Filter(tags={"e": ["a", "b"]}).matches(event)
        assert not Filter(tags={"e": ["a"]}).matches(event)

    def test_empty_tag_list_matches_nothing(self) -> None:
        """An empty tag list never matches."""
        assert not Filter(tags={"e": []}).matches(make_event(tags=[["e", "a"]]))

    def test_limit_ignored(self) -> None:
        """limit does not affect per-event matching."""
        assert Filter(limit=1).matches(make_event())
