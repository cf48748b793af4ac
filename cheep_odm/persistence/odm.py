import json
import typing as t

from bson import json_util
from loguru import logger
from pymongo.collection import Collection
from pymongo.database import Database

from cheep_odm.errors import CallerInputError
from cheep_odm.persistence.document import Document, DocumentT, get_collection_name
from cheep_odm.serialization.serializer import Serializer


class Odm:
    """
    Creates, reads, updates, deletes, lists and searches :class:`~cheep_odm.persistence.document.Document` records in
    a MongoDB database. Each document class is stored in the collection it was registered with via
    :func:`~cheep_odm.persistence.document.collection`. Errors raised by ``pymongo`` are passed through as-is.

    With the default serializer, datetimes are stored to the second and without a time zone: aware datetimes are
    converted to UTC, and are read back as naive UTC datetimes. Register a
    :class:`~cheep_odm.serialization.codecs.DateTimeCodec` on the serializer to keep milliseconds and the UTC offset.

    Parameters
    ----------
    database : pymongo.database.Database
        The database to work with, e.g. from :func:`~cheep_odm.persistence.connection.get_database`.
    serializer : Serializer, optional
        A customised serializer (e.g. with additional codecs). Defaults to a plain :class:`Serializer`.
    read_only : bool
        Whether this ODM is read only. If ``True``, :meth:`create`, :meth:`update` and :meth:`delete` raise an
        ``AssertionError``.
    """

    def __init__(self, database: Database, serializer: t.Optional[Serializer] = None, *, read_only=False):
        self.database = database
        self.serializer = serializer if serializer is not None else Serializer()
        self._read_only = read_only

    def create(self, document: Document):
        """Creates ``document`` in the database. On return, the new document ID will have been set on ``document``."""
        self._check_document(document)
        self.assert_can_edit()
        collection = self._collection(type(document))
        result = collection.insert_one(self._to_bson(document))
        document.set_id(result.inserted_id)
        logger.debug("created document {} in {}", result.inserted_id, collection.name)

    def read(self, document: DocumentT) -> t.Optional[DocumentT]:
        """
        Reads the stored version of ``document``, which is located by its ID only. Returns ``None`` if there is no
        such record.
        """
        self._check_id(document)
        collection = self._collection(type(document))
        logger.debug("reading document {} from {}", document.get_id(), collection.name)
        found = collection.find_one({"_id": document.get_id()})
        if found is None:
            return None
        return self._from_bson(found, type(document))

    def update(self, document: Document) -> t.Optional[t.Dict[str, t.Any]]:
        """
        Replaces the stored version of ``document``, located by its ID, with ``document``. Returns the raw document
        as it was before the update, or ``None`` if no matching record could be found.
        """
        self._check_id(document)
        self.assert_can_edit()
        collection = self._collection(type(document))
        logger.debug("updating document {} in {}", document.get_id(), collection.name)
        return collection.find_one_and_replace({"_id": document.get_id()}, self._to_bson(document))

    def delete(self, document: Document) -> bool:
        """
        Deletes the stored version of ``document``, located by its ID only. Returns ``True`` if the record was
        deleted, and ``False`` if it didn't exist.
        """
        self._check_id(document)
        self.assert_can_edit()
        collection = self._collection(type(document))
        logger.debug("deleting document {} from {}", document.get_id(), collection.name)
        return collection.find_one_and_delete({"_id": document.get_id()}) is not None

    def list(self, document_cls: t.Type[DocumentT]) -> t.List[DocumentT]:
        """Lists every record of type ``document_cls``, in whatever order the database returns them."""
        collection = self._collection(document_cls)
        logger.debug("listing documents in {}", collection.name)
        return [self._from_bson(found, document_cls) for found in collection.find()]

    def search(self, criteria: DocumentT) -> t.List[DocumentT]:
        """
        Lists the records that match ``criteria``. Every field that was set on ``criteria`` (and is not ``None``) must
        be equal in a matching record. A nested model that was set must equal the stored subdocument as a whole,
        including its defaulted fields. Fields that were not set match anything.
        """
        self._check_document(criteria)
        collection = self._collection(type(criteria))
        query = self._to_query(criteria)
        logger.debug("searching {} for {}", collection.name, query)
        return [self._from_bson(found, type(criteria)) for found in collection.find(query)]

    def assert_can_edit(self):
        """Raises an assertion error if this ODM is read only."""
        if self._read_only:
            raise AssertionError("odm is read only")

    def _collection(self, document_cls: type) -> Collection:
        return self.database[get_collection_name(document_cls)]

    def _to_bson(self, document: Document) -> t.Dict[str, t.Any]:
        # Parsing as extended JSON turns `{"$oid": ...}` values back into `ObjectId`s.
        return json_util.loads(self.serializer.serialize(document))

    def _to_query(self, criteria: Document) -> t.Dict[str, t.Any]:
        # Only top-level fields are filtered on whether they were set. A nested model set on `criteria` must match the
        # stored subdocument exactly, so it is encoded in full, defaults included.
        data = self.serializer.encode(criteria)
        set_keys = {type(criteria).model_fields[name].alias or name for name in criteria.model_fields_set}
        return json_util.loads(json.dumps({key: value for key, value in data.items() if key in set_keys}))

    def _from_bson(self, found: t.Mapping[str, t.Any], document_cls: t.Type[DocumentT]) -> DocumentT:
        # Plain JSON keeps non-finite floats as floats, where relaxed extended JSON would wrap them in `$numberDouble`.
        return self.serializer.deserialize(json.dumps(found, default=json_util.default), document_cls)

    @staticmethod
    def _check_document(document: t.Optional[Document]):
        if document is None:
            raise CallerInputError("No document provided.")

    @classmethod
    def _check_id(cls, document: t.Optional[Document]):
        cls._check_document(document)
        if document.get_id() is None:
            raise CallerInputError("The document ID has not been set.")
