"""
Unit tests for session serializers.

Tests cover:
- Round trips of session values for both encodings
- Encode failures reported as SERIALIZATION_FAILED
- Decode failures reported as SessionDecodeError with the session attached
- Permissive name-based selection
"""

import json
import logging
import pickle
from datetime import datetime, timezone

import pytest
from hypothesis import given, strategies as st

from errors.codes import ErrorCode
from errors.exceptions import AppException, SessionDecodeError
from kvstore.serializers import JSONSerializer, PickleSerializer, serializer_for
from session.models import Session


json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text()
    | st.floats(allow_nan=False, allow_infinity=False),
    lambda children: st.lists(children, max_size=4)
    | st.dictionaries(st.text(), children, max_size=4),
    max_leaves=10,
)

session_values = st.dictionaries(st.text(), json_values, max_size=8)

_load_side_effects = []


def _record_load():
    _load_side_effects.append("called")


class _RunsOnLoad:
    """Pickles to a call of _record_load."""

    def __reduce__(self):
        return (_record_load, ())


class TestRoundTrip:
    """Round-trip properties of both encodings."""

    @given(values=session_values, session_id=st.text(alphabet="ABCDEFGHIJ234567", max_size=20))
    def test_json_round_trip(self, values, session_id):
        """Test that JSON rebuilds the identifier's values exactly."""
        serializer = JSONSerializer()
        original = Session(name="s", id=session_id, values=dict(values))

        restored = Session(name="s", id=session_id)
        serializer.deserialize(serializer.serialize(original), restored)

        assert restored.id == original.id
        assert restored.values == original.values

    @given(values=session_values, session_id=st.text(alphabet="ABCDEFGHIJ234567", max_size=20))
    def test_pickle_round_trip(self, values, session_id):
        """Test that the binary encoding rebuilds the values exactly."""
        serializer = PickleSerializer()
        original = Session(name="s", id=session_id, values=dict(values))

        restored = Session(name="s", id=session_id)
        serializer.deserialize(serializer.serialize(original), restored)

        assert restored.id == original.id
        assert restored.values == original.values

    def test_pickle_keeps_non_json_types(self):
        """Test that the binary encoding round-trips values JSON cannot express."""
        values = {
            1: "int key",
            "when": datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
            "pair": (1, 2),
            "tags": {"a", "b"},
            "blob": b"\x00\x01",
        }
        serializer = PickleSerializer()

        restored = Session(name="s")
        serializer.deserialize(serializer.serialize(Session(name="s", values=values)), restored)

        assert restored.values == values

    def test_json_output_is_readable(self):
        """Test that the JSON encoding is a plain JSON object."""
        data = JSONSerializer().serialize(Session(name="s", values={"user": "alice"}))

        assert json.loads(data.decode("utf-8")) == {"user": "alice"}

    def test_deserialize_merges_into_existing_values(self):
        """Test that decoded values are added to the session in place."""
        session = Session(name="s", values={"kept": 1})
        data = JSONSerializer().serialize(Session(name="s", values={"user": "alice"}))

        JSONSerializer().deserialize(data, session)

        assert session.values == {"kept": 1, "user": "alice"}


class TestEncodeFailures:
    """Tests for values that cannot be encoded."""

    def test_json_rejects_non_string_keys(self):
        with pytest.raises(AppException) as exc_info:
            JSONSerializer().serialize(Session(name="s", values={1: "x"}))

        assert exc_info.value.error_code == ErrorCode.SERIALIZATION_FAILED

    def test_json_rejects_unencodable_values(self):
        with pytest.raises(AppException) as exc_info:
            JSONSerializer().serialize(Session(name="s", values={"when": datetime.now()}))

        assert exc_info.value.error_code == ErrorCode.SERIALIZATION_FAILED

    def test_pickle_rejects_unpicklable_values(self):
        with pytest.raises(AppException) as exc_info:
            PickleSerializer().serialize(Session(name="s", values={"fn": lambda: None}))

        assert exc_info.value.error_code == ErrorCode.SERIALIZATION_FAILED


class TestDecodeFailures:
    """Tests for bytes that cannot be decoded."""

    @pytest.mark.parametrize("serializer", [JSONSerializer(), PickleSerializer()])
    def test_corrupt_bytes(self, serializer):
        """Test that garbage raises SessionDecodeError and leaves values untouched."""
        session = Session(name="s", id="ABC", values={"kept": 1})

        with pytest.raises(SessionDecodeError) as exc_info:
            serializer.deserialize(b"\x80\x05garbage", session)

        assert exc_info.value.error_code == ErrorCode.SESSION_DECODE_FAILED
        assert exc_info.value.session is session
        assert session.values == {"kept": 1}

    def test_pickle_bytes_read_as_json(self):
        """Test that switching to JSON invalidates binary sessions."""
        data = PickleSerializer().serialize(Session(name="s", values={"user": "alice"}))

        with pytest.raises(SessionDecodeError):
            JSONSerializer().deserialize(data, Session(name="s"))

    def test_json_bytes_read_as_pickle(self):
        """Test that switching to binary invalidates JSON sessions."""
        data = JSONSerializer().serialize(Session(name="s", values={"user": "alice"}))

        with pytest.raises(SessionDecodeError):
            PickleSerializer().deserialize(data, Session(name="s"))

    def test_json_non_object_payload(self):
        with pytest.raises(SessionDecodeError):
            JSONSerializer().deserialize(b"[1, 2, 3]", Session(name="s"))

    def test_pickle_non_mapping_payload(self):
        with pytest.raises(SessionDecodeError):
            PickleSerializer().deserialize(pickle.dumps([1, 2, 3]), Session(name="s"))


class TestSerializerFor:
    """Tests for name-based selection."""

    def test_json(self):
        assert isinstance(serializer_for("JSON"), JSONSerializer)

    @pytest.mark.parametrize("name", ["BINARY", None, ""])
    def test_binary_names(self, name):
        assert isinstance(serializer_for(name), PickleSerializer)

    def test_unknown_name_falls_back_with_warning(self, caplog):
        """Test that a typo selects binary and is logged."""
        with caplog.at_level(logging.WARNING, logger="kvstore.serializers"):
            serializer = serializer_for("json")

        assert isinstance(serializer, PickleSerializer)
        assert "Unknown serializer name" in caplog.text

    def test_known_names_do_not_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="kvstore.serializers"):
            serializer_for("BINARY")
            serializer_for("JSON")

        assert caplog.text == ""


class TestUntrustedPayloads:
    """Tests for payloads written by someone other than the store."""

    def test_binary_decode_runs_embedded_code(self):
        """Test that unpickling executes callables embedded in the payload."""
        _load_side_effects.clear()
        data = pickle.dumps(_RunsOnLoad())

        with pytest.raises(SessionDecodeError):
            PickleSerializer().deserialize(data, Session(name="s"))

        assert _load_side_effects == ["called"]

    def test_json_decode_never_runs_embedded_code(self):
        """Test that the JSON serializer rejects the same payload inertly."""
        _load_side_effects.clear()
        data = pickle.dumps(_RunsOnLoad())

        with pytest.raises(SessionDecodeError):
            JSONSerializer().deserialize(data, Session(name="s"))

        assert _load_side_effects == []

    def test_binary_serializer_documents_the_risk(self):
        doc = PickleSerializer.__doc__

        assert "arbitrary code" in doc
        assert '"JSON"' in doc
