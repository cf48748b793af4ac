import inspect
import json
import sys
import typing as t
from datetime import datetime

from bson import ObjectId
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, TypeAdapter

from cheep_odm.serialization.codecs import BsonDateCodec, Codec, ObjectIdCodec, as_codec
from cheep_odm.types.data import DataModel


if sys.version_info >= (3, 10):
    from types import UnionType

    _union_types: t.Tuple[t.Any, ...] = (t.Union, UnionType)
else:
    _union_types = (t.Union,)

T = t.TypeVar("T")
CodecLike = t.Union[Codec, t.Callable[[t.Any], t.Any]]


class Serializer:
    """
    Converts records to and from JSON text. :class:`bson.ObjectId` values are written as ``{"$oid": "<hex>"}`` and
    ``datetime`` values with :data:`~cheep_odm.serialization.codecs.BSON_DATE_FORMAT`. Any other type without a codec
    is mapped field by field by pydantic.

    Parameters
    ----------
    codecs : dict, optional
        Extra codecs, keyed by the value type they handle. Each value is either a
        :class:`~cheep_odm.serialization.codecs.Codec`, or a plain encoder function. A codec given here replaces the
        built-in codec for the same type, e.g. ``{datetime: DateTimeCodec()}``.
    """

    def __init__(self, codecs: t.Optional[t.Mapping[t.Type, CodecLike]] = None):
        self._codecs: t.Dict[t.Type, Codec] = {ObjectId: ObjectIdCodec(), datetime: BsonDateCodec()}
        if codecs is not None:
            # Caller codecs win over the built-in ones.
            self._codecs.update({type_: as_codec(codec) for type_, codec in codecs.items()})

    @classmethod
    def with_codec(cls, type_: t.Type, codec: CodecLike) -> "Serializer":
        """Makes a serializer with a single extra codec, for when a whole ``codecs`` dict would be overkill."""
        return cls({type_: codec})

    @property
    def codecs(self) -> t.Dict[t.Type, Codec]:
        return dict(self._codecs)

    def serialize(self, obj: t.Any, *, exclude_unset: bool = False) -> str:
        """
        Serializes ``obj`` to compact JSON. Model fields that are ``None`` are left out. If ``exclude_unset`` is
        ``True``, model fields that were never explicitly set are left out too.
        """
        return json.dumps(self.encode(obj, exclude_unset=exclude_unset), separators=(",", ":"))

    def encode(self, obj: t.Any, *, exclude_unset: bool = False) -> t.Any:
        """Like :meth:`serialize`, but returns the JSON-ready Python data rather than text."""
        custom_encoder = {type_: codec.encode for type_, codec in self._codecs.items()}
        if isinstance(obj, DataModel):
            return obj.to_dict(custom_encoder, exclude_unset=exclude_unset)
        if isinstance(obj, BaseModel):
            obj = obj.model_dump(by_alias=True, exclude_none=True, exclude_unset=exclude_unset)
        return jsonable_encoder(obj, custom_encoder=custom_encoder)

    def deserialize(self, raw: t.Union[str, bytes], type_: t.Type[T]) -> t.Optional[T]:
        """Deserializes the JSON text ``raw`` into a new instance of ``type_``. JSON ``null`` gives ``None``."""
        data = json.loads(raw)
        if data is None:
            return None
        return self.decode(data, type_)

    def decode(self, data: t.Any, type_: t.Type[T]) -> T:
        """Like :meth:`deserialize`, but takes already-parsed JSON data."""
        codec = self._find_codec(type_)
        if codec is not None:
            return codec.decode(data)
        if inspect.isclass(type_) and issubclass(type_, BaseModel):
            return type_.model_validate(self._decode_fields(data, type_))
        return TypeAdapter(type_).validate_python(data)

    def _find_codec(self, type_: t.Any) -> t.Optional[Codec]:
        if not inspect.isclass(type_):
            return None
        if type_ in self._codecs:
            return self._codecs[type_]
        for codec_type, codec in self._codecs.items():
            if issubclass(type_, codec_type):
                return codec
        return None

    def _decode_fields(self, data: t.Any, model_cls: t.Type[BaseModel]) -> t.Any:
        """Decodes the values of ``data`` that belong to fields of ``model_cls`` which have a codec."""
        if not isinstance(data, dict):
            return data
        decoded = dict(data)
        for name, field in model_cls.model_fields.items():
            for key in {field.alias or name, name}:
                if key in decoded:
                    decoded[key] = self._decode_value(decoded[key], field.annotation)
        return decoded

    def _decode_value(self, value: t.Any, annotation: t.Any) -> t.Any:
        if value is None:
            return None
        origin = t.get_origin(annotation)
        if origin in _union_types:
            args = [arg for arg in t.get_args(annotation) if arg is not type(None)]
            if len(args) == 1:
                return self._decode_value(value, args[0])
            # Ambiguous unions are left for pydantic to resolve.
            return value
        if origin in (list, set, frozenset, tuple) and isinstance(value, list):
            args = t.get_args(annotation)
            if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
                return value
            item_type = args[0] if args else t.Any
            return [self._decode_value(item, item_type) for item in value]
        if origin is dict and isinstance(value, dict):
            args = t.get_args(annotation)
            if len(args) == 2:
                return {k: self._decode_value(v, args[1]) for k, v in value.items()}
            return value
        codec = self._find_codec(annotation)
        if codec is not None:
            return codec.decode(value)
        if inspect.isclass(annotation) and issubclass(annotation, BaseModel):
            return self._decode_fields(value, annotation)
        return value
