import typing as t

from bson import ObjectId
from pydantic import Field

from cheep_odm.errors import ConfigurationError
from cheep_odm.types.data import DataModel


class Document(DataModel):
    """
    A pydantic model that can be persisted as a MongoDB document. Its ``id`` is stored under the ``_id`` key, and is
    ``None`` until the document has been created in the database. Subclasses must be registered with
    :func:`collection` before they can be persisted.

    Datetime fields are stored without a time zone by default, so an aware datetime is read back as the equivalent naive
    UTC datetime, and compares unequal to the original.
    """

    id: t.Optional[ObjectId] = Field(default=None, alias="_id")

    def get_id(self) -> t.Optional[ObjectId]:
        """Returns the ID this document is saved under, or ``None`` if it hasn't been saved yet."""
        return self.id

    def set_id(self, id_: t.Optional[ObjectId]):
        self.id = id_


DocumentT = t.TypeVar("DocumentT", bound=Document)  # used to help static type checking tools

# Collection names, keyed by the exact class they were registered for.
_collection_names: t.Dict[type, str] = {}


def collection(name: str = "") -> t.Callable[[t.Type[DocumentT]], t.Type[DocumentT]]:
    """
    Class decorator that registers the MongoDB collection a document class is stored in. If ``name`` is blank, the
    name of the class is used instead. E.g.

    >>> @collection("fruits")
    ... class Fruit(Document):
    ...     name: str

    Registration is not inherited: a subclass of a registered class must be registered itself.
    """

    def register(cls: t.Type[DocumentT]) -> t.Type[DocumentT]:
        _collection_names[cls] = name if name and name.strip() else cls.__name__
        return cls

    return register


def get_collection_name(cls: type) -> str:
    """Returns the collection name registered for ``cls``, raising a ``ConfigurationError`` if there isn't one."""
    try:
        return _collection_names[cls]
    except KeyError:
        raise ConfigurationError(
            f"{cls.__name__} is not registered as a collection with @collection. Are you sure this is right?"
        ) from None
