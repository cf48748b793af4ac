import typing as t
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from bson import ObjectId
from bson.errors import InvalidId
from loguru import logger

from cheep_odm.errors import FormatError


DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"
"""
Format used by :class:`DateTimeCodec`, e.g. ``2023-06-01T14:22:05.123+0000``. When encoding, the fractional seconds
are written with millisecond precision.
"""

BSON_DATE_FORMAT = "%B %d, %Y %H:%M:%S"
"""Format used by :class:`BsonDateCodec`, the serializer's default for dates, e.g. ``June 01, 2023 14:22:05``."""

T = t.TypeVar("T")


class Codec(ABC, t.Generic[T]):
    """
    When implemented, converts values of some type to and from the JSON-ready Python data (dicts, lists, strings,
    numbers) that is written to, and read back from, documents. Register codecs with a
    :class:`~cheep_odm.serialization.serializer.Serializer`.
    """

    @abstractmethod
    def encode(self, value: T) -> t.Any:
        pass

    @abstractmethod
    def decode(self, data: t.Any) -> t.Optional[T]:
        pass


class EncoderCodec(Codec[t.Any]):
    """
    Wraps a plain encoder function. Decoding passes data through unchanged, leaving it to pydantic to validate.
    """

    def __init__(self, encoder: t.Callable[[t.Any], t.Any]):
        self.encoder = encoder

    def encode(self, value: t.Any) -> t.Any:
        return self.encoder(value)

    def decode(self, data: t.Any) -> t.Any:
        return data


class ObjectIdCodec(Codec[ObjectId]):
    """
    Encodes a :class:`bson.ObjectId` as MongoDB extended JSON, i.e. ``{"$oid": "507f1f77bcf86cd799439011"}``.
    """

    def encode(self, value: t.Optional[ObjectId]) -> t.Optional[t.Dict[str, str]]:
        if value is None:
            return None
        return {"$oid": str(value)}

    def decode(self, data: t.Any) -> t.Optional[ObjectId]:
        if data is None or isinstance(data, ObjectId):
            return data
        if isinstance(data, dict):
            text = data.get("$oid")
        elif isinstance(data, str):
            text = data
        else:
            raise FormatError(f"cannot decode an ObjectId from {type(data)}")
        if text is None or (isinstance(text, str) and not text.strip()):
            return None
        try:
            return ObjectId(text)
        except (InvalidId, TypeError) as e:
            raise FormatError(f"invalid ObjectId {text!r}") from e


class DateTimeCodec(Codec[datetime]):
    """
    Encodes datetimes with :data:`DATETIME_FORMAT`, to millisecond precision, including the UTC offset. Naive
    datetimes are taken to be in UTC.

    Parameters
    ----------
    strict : bool, optional
        What to do with text that can't be parsed. If ``False`` (the default), a warning is logged and ``None`` is
        returned in place of the value. If ``True``, a :class:`~cheep_odm.errors.FormatError` is raised.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def encode(self, value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}" + value.strftime("%z")

    def decode(self, data: t.Any) -> t.Optional[datetime]:
        if data is None or isinstance(data, datetime):
            return data
        try:
            return datetime.strptime(data, DATETIME_FORMAT)
        except (TypeError, ValueError) as e:
            if self.strict:
                raise FormatError(f"cannot parse datetime {data!r} with format {DATETIME_FORMAT!r}") from e
            logger.warning("could not parse datetime {!r}; decoding it as None", data)
            return None


class BsonDateCodec(Codec[datetime]):
    """
    Encodes datetimes with :data:`BSON_DATE_FORMAT`, to second precision and without a time zone. Aware datetimes are
    converted to UTC first. Decoding also accepts ISO 8601 text.
    """

    def encode(self, value: datetime) -> str:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.strftime(BSON_DATE_FORMAT)

    def decode(self, data: t.Any) -> t.Optional[datetime]:
        if data is None or isinstance(data, datetime):
            return data
        if not isinstance(data, str):
            raise FormatError(f"cannot decode a datetime from {type(data)}")
        try:
            return datetime.strptime(data, BSON_DATE_FORMAT)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(data)
        except ValueError as e:
            raise FormatError(f"cannot parse datetime {data!r} with format {BSON_DATE_FORMAT!r}") from e


def as_codec(codec: t.Union[Codec, t.Callable[[t.Any], t.Any]]) -> Codec:
    """Accepts a :class:`Codec`, or a plain encoder function which is wrapped in an :class:`EncoderCodec`."""
    if isinstance(codec, Codec):
        return codec
    if callable(codec):
        return EncoderCodec(codec)
    raise TypeError(f"expected a Codec or an encoder function, got {type(codec)}")
