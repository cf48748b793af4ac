import typing as t

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict


class DataModel(BaseModel):
    """
    A base class for defining pydantic models that can hold driver types such as :class:`bson.ObjectId`, and that can
    be encoded to JSON-ready Python data with per-type custom encoders. E.g.

    >>> from bson import ObjectId
    ...
    ... class MyModel(DataModel):
    ...     a: str
    ...     b: ObjectId
    ...
    ... model = MyModel(a="hello world", b=ObjectId())
    ... data = model.to_dict(custom_encoder={ObjectId: str})
    ... # `data` is now `{"a": "hello world", "b": "<24 hex chars>"}`

    Fields with aliases can be populated by either their name or their alias.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    def to_dict(
        self,
        custom_encoder: t.Optional[t.Dict[t.Any, t.Callable[[t.Any], t.Any]]] = None,
        *,
        exclude_unset: bool = False,
    ) -> t.Dict[str, t.Any]:
        """
        Creates a dictionary representation of the model, keyed by field alias, encoding all values to basic Python
        data types. Fields whose value is ``None`` are left out. Values whose type has an entry in ``custom_encoder``
        are encoded with it.
        """
        # Dump to a plain `dict` first, so `jsonable_encoder` sees the raw field values (e.g. `ObjectId`s) rather than
        # the model, and applies `custom_encoder` to them.
        d = self.model_dump(by_alias=True, exclude_none=True, exclude_unset=exclude_unset)
        return jsonable_encoder(d, custom_encoder=custom_encoder)
