"""Unit tests for the materialized path codec."""
from __future__ import annotations

import pytest

from treepath_service.core.database.exceptions import MalformedPathError
from treepath_service.core.database.hierarchy.codec import PathCodec, parse_int_id


@pytest.fixture
def codec() -> PathCodec:
    return PathCodec()


@pytest.mark.unit
class TestEncode:
    """Test suite for PathCodec.encode."""

    def test_empty_chain_is_bare_delimiter(self, codec: PathCodec):
        assert codec.encode([]) == "-"
        assert codec.root_path == "-"

    def test_chain_is_delimiter_bounded(self, codec: PathCodec):
        assert codec.encode([1]) == "-1-"
        assert codec.encode([1, 4]) == "-1-4-"
        assert codec.encode([12, 3, 456]) == "-12-3-456-"

    def test_custom_delimiter(self):
        codec = PathCodec(delimiter="/")
        assert codec.encode([1, 4]) == "/1/4/"
        assert codec.root_path == "/"

    def test_rejects_id_containing_delimiter(self):
        codec = PathCodec(parse_id=str)

        with pytest.raises(MalformedPathError) as exc_info:
            codec.encode(["a-b"])

        assert "delimiter" in exc_info.value.reason

    def test_rejects_empty_id(self):
        codec = PathCodec(parse_id=str)

        with pytest.raises(MalformedPathError):
            codec.encode([""])

    def test_rejects_id_outside_domain(self, codec: PathCodec):
        """Negative numbers and text are not integer ids."""
        with pytest.raises(MalformedPathError):
            codec.encode(["abc"])
        with pytest.raises(MalformedPathError):
            codec.encode([-3])

    def test_delimiter_must_be_single_character(self):
        with pytest.raises(ValueError, match="single character"):
            PathCodec(delimiter="--")


@pytest.mark.unit
class TestDecode:
    """Test suite for PathCodec.decode."""

    def test_root_path_decodes_to_empty_chain(self, codec: PathCodec):
        assert codec.decode("-") == []

    def test_decodes_integer_ids_in_order(self, codec: PathCodec):
        assert codec.decode("-1-4-") == [1, 4]
        assert codec.decode("-12-3-456-") == [12, 3, 456]

    def test_inverse_of_encode(self, codec: PathCodec):
        for chain in ([], [7], [1, 2, 3], [10, 200, 3000, 4]):
            assert codec.decode(codec.encode(chain)) == chain

    @pytest.mark.parametrize(
        "path",
        [
            "",
            "1-4-",
            "-1-4",
            "-1--4-",
            "--",
            "-abc-",
            "-1-x-",
            "corrupt",
            "- 1-",
        ],
    )
    def test_malformed_paths_raise(self, codec: PathCodec, path: str):
        with pytest.raises(MalformedPathError):
            codec.decode(path)

    def test_missing_path_raises(self, codec: PathCodec):
        """A missing path is never read as 'no ancestors'."""
        with pytest.raises(MalformedPathError):
            codec.decode(None)

    def test_is_valid(self, codec: PathCodec):
        assert codec.is_valid("-1-2-")
        assert codec.is_valid("-")
        assert not codec.is_valid("-1-2")
        assert not codec.is_valid(None)

    def test_custom_parse_id(self):
        codec = PathCodec(delimiter=".", parse_id=str)
        assert codec.decode(".a.b.") == ["a", "b"]


@pytest.mark.unit
class TestHelpers:
    """Test suite for prefix and membership helpers."""

    def test_child_prefix(self, codec: PathCodec):
        assert codec.child_prefix("-", 1) == "-1-"
        assert codec.child_prefix("-1-", 4) == "-1-4-"

    def test_depth(self, codec: PathCodec):
        assert codec.depth("-") == 0
        assert codec.depth("-1-4-9-") == 3

    def test_contains_is_exact_token_match(self, codec: PathCodec):
        """Id 12 is not an ancestor just because "123" contains "12"."""
        assert codec.contains("-123-", 123)
        assert not codec.contains("-123-", 12)
        assert not codec.contains("-123-", 23)
        assert codec.contains("-5-12-", 12)

    def test_rebase_swaps_prefix(self, codec: PathCodec):
        assert codec.rebase("-1-2-3-", "-1-2-", "-7-2-") == "-7-2-3-"
        assert codec.rebase("-1-2-", "-1-2-", "-2-") == "-2-"

    def test_rebase_requires_prefix(self, codec: PathCodec):
        with pytest.raises(MalformedPathError):
            codec.rebase("-5-6-", "-1-", "-2-")

    def test_parse_int_id(self):
        assert parse_int_id("42") == 42
        for bad in ("", "-1", "+1", " 1", "1.0", "٣"):
            with pytest.raises(ValueError):
                parse_int_id(bad)

    def test_repr(self, codec: PathCodec):
        assert repr(codec) == "PathCodec(delimiter='-')"
