"""
Session payload serializers.

A serializer turns a session's ``values`` mapping into bytes and back. Two
encodings are provided and selected by name with ``serializer_for``:
pickle ("BINARY", the default) and JSON ("JSON").
"""

import json
import logging
import pickle
from abc import ABC, abstractmethod
from typing import Any, Optional

from errors.exceptions import serialization_failed, session_decode_failed

logger = logging.getLogger(__name__)


class SessionSerializer(ABC):
    """Encodes and decodes the values mapping of a session."""

    name: str = ""

    @abstractmethod
    def serialize(self, session: Any) -> bytes:
        """
        Encode ``session.values``.

        Raises:
            AppException: SERIALIZATION_FAILED if a value cannot be encoded.
        """

    @abstractmethod
    def deserialize(self, data: bytes, session: Any) -> None:
        """
        Decode ``data`` into ``session.values``.

        The session is only updated after the whole payload decoded.

        Raises:
            SessionDecodeError: If the bytes are corrupt or not a mapping.
        """


class PickleSerializer(SessionSerializer):
    """
    Binary encoding; round-trips any picklable value.

    Unpickling runs arbitrary code embedded in the payload, so anyone able
    to write keys in the Redis keyspace can execute code in this process.
    Use the "JSON" serializer when Redis is shared with untrusted writers.
    """

    name = "BINARY"

    def serialize(self, session: Any) -> bytes:
        try:
            return pickle.dumps(dict(session.values), protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as exc:
            raise serialization_failed(
                "Session values could not be pickled",
                details={"reason": str(exc)}
            ) from exc

    def deserialize(self, data: bytes, session: Any) -> None:
        try:
            values = pickle.loads(data)
        # unpickling corrupt input can raise nearly anything
        except Exception as exc:
            raise session_decode_failed(
                "Stored session is not a valid binary payload",
                session=session,
                details={"reason": str(exc)}
            ) from exc
        if not isinstance(values, dict):
            raise session_decode_failed(
                "Stored session payload is not a mapping",
                session=session,
                details={"type": type(values).__name__}
            )
        session.values.update(values)


class JSONSerializer(SessionSerializer):
    """Text encoding; keys must be strings and values JSON-compatible."""

    name = "JSON"

    def serialize(self, session: Any) -> bytes:
        for key in session.values:
            if not isinstance(key, str):
                raise serialization_failed(
                    "JSON sessions only support string keys",
                    details={"key": repr(key)}
                )
        try:
            return json.dumps(session.values, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise serialization_failed(
                "Session values could not be encoded as JSON",
                details={"reason": str(exc)}
            ) from exc

    def deserialize(self, data: bytes, session: Any) -> None:
        try:
            values = json.loads(data)
        except (UnicodeDecodeError, ValueError) as exc:
            raise session_decode_failed(
                "Stored session is not valid JSON",
                session=session,
                details={"reason": str(exc)}
            ) from exc
        if not isinstance(values, dict):
            raise session_decode_failed(
                "Stored session payload is not a JSON object",
                session=session,
                details={"type": type(values).__name__}
            )
        session.values.update(values)


def serializer_for(name: Optional[str]) -> SessionSerializer:
    """
    Pick a serializer by name.

    "JSON" selects JSONSerializer. Every other name, None included, selects
    PickleSerializer; names other than "BINARY" are logged since they are
    most likely typos.
    """
    if name == JSONSerializer.name:
        return JSONSerializer()
    if name and name != PickleSerializer.name:
        logger.warning("Unknown serializer name, using binary", extra={
            "extra_data": {"serializer": name}
        })
    return PickleSerializer()
