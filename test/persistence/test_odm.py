import math
import typing as t
from datetime import datetime, timedelta, timezone
from unittest import TestCase, mock

import mongomock
from bson import ObjectId

from cheep_odm.errors import CallerInputError, ConfigurationError
from cheep_odm.persistence.document import Document, collection
from cheep_odm.persistence.odm import Odm
from cheep_odm.serialization.codecs import DateTimeCodec
from cheep_odm.serialization.serializer import Serializer
from cheep_odm.types.data import DataModel


@collection("fruits")
class Fruit(Document):
    name: t.Optional[str] = None
    color: t.Optional[str] = None
    is_tropical: t.Optional[bool] = None
    price: t.Optional[float] = None
    picked_at: t.Optional[datetime] = None


@collection()
class Basket(Document):
    fruit_ids: t.List[ObjectId] = []
    delivered_at: t.Optional[datetime] = None


class Vegetable(Document):
    name: str


class Tag(DataModel):
    text: str
    weight: int = 1


@collection("boxes")
class Box(Document):
    name: t.Optional[str] = None
    tag: t.Optional[Tag] = None
    price: t.Optional[float] = None


class TestOdm(TestCase):
    def setUp(self):
        self.database = mongomock.MongoClient().db
        self.odm = Odm(self.database)
        self.apple = Fruit(
            name="apple", color="red", is_tropical=False, price=0.5, picked_at=datetime(2023, 6, 1, 14, 22, 5)
        )
        self.mango = Fruit(name="mango", color="yellow", is_tropical=True, price=math.pi)
        self.pear = Fruit(name="pear", color="green", is_tropical=False, price=0.75)

    def test_can_create(self):
        self.assertIsNone(self.apple.get_id())
        self.odm.create(self.apple)
        # The ID should have been written back into the record.
        self.assertIsInstance(self.apple.get_id(), ObjectId)
        stored = self.database["fruits"].find_one({"_id": self.apple.get_id()})
        self.assertIsNotNone(stored)  # should exist in the db
        self.assertEqual(stored["name"], "apple")
        self.assertEqual(stored["picked_at"], "June 01, 2023 14:22:05")
        # `None` fields are not stored.
        self.odm.create(self.mango)
        stored = self.database["fruits"].find_one({"_id": self.mango.get_id()})
        self.assertNotIn("picked_at", stored)
        self.assertNotEqual(self.mango.get_id(), self.apple.get_id())

    def test_can_read(self):
        self.odm.create(self.apple)
        apple2 = self.odm.read(Fruit(id=self.apple.get_id()))
        self.assertIsNotNone(apple2)  # should exist in the db
        self.assertEqual(self.apple, apple2)  # should have serialized and deserialized correctly

    def test_read_missing_record_returns_none(self):
        self.assertIsNone(self.odm.read(Fruit(id=ObjectId())))

    def test_can_update(self):
        self.odm.create(self.apple)
        apple2 = Fruit(id=self.apple.get_id(), name="apple", color="green", price=0.6)
        previous = self.odm.update(apple2)
        # The raw, pre-update document is returned.
        self.assertIsInstance(previous, dict)
        self.assertEqual(previous["_id"], self.apple.get_id())
        self.assertEqual(previous["color"], "red")
        # The whole document was replaced.
        apple3 = self.odm.read(Fruit(id=self.apple.get_id()))
        self.assertEqual(apple3, apple2)
        self.assertIsNone(apple3.picked_at)

    def test_update_missing_record_returns_none(self):
        self.assertIsNone(self.odm.update(Fruit(id=ObjectId(), name="ghost")))
        self.assertEqual(self.database["fruits"].count_documents({}), 0)

    def test_can_delete(self):
        self.odm.create(self.mango)
        self.assertIsNotNone(self.odm.read(self.mango))  # should exist in the db
        self.assertTrue(self.odm.delete(self.mango))
        self.assertIsNone(self.odm.read(self.mango))  # should *not* exist in the db
        # Deleting again is not an error.
        self.assertFalse(self.odm.delete(self.mango))

    def test_delete_missing_record_returns_false(self):
        self.assertFalse(self.odm.delete(Fruit(id=ObjectId())))

    def test_can_list(self):
        self.assertEqual(self.odm.list(Fruit), [])
        self._create_some_records()
        fruits = self.odm.list(Fruit)
        self.assertEqual(len(fruits), 3)
        self.assertEqual(
            sorted(fruits, key=lambda fruit: fruit.name), [self.apple, self.mango, self.pear]
        )  # should have serialized and deserialized correctly

    def test_can_search(self):
        self._create_some_records()
        fruits = self.odm.search(Fruit(name="mango"))
        self.assertEqual(fruits, [self.mango])
        # Only the fields that were set are constrained.
        fruits = self.odm.search(Fruit(is_tropical=False))
        self.assertEqual(sorted(fruit.name for fruit in fruits), ["apple", "pear"])
        fruits = self.odm.search(Fruit(is_tropical=False, color="green"))
        self.assertEqual(fruits, [self.pear])
        self.assertEqual(self.odm.search(Fruit(name="kiwi")), [])
        # An empty criteria record matches everything.
        self.assertEqual(len(self.odm.search(Fruit())), 3)

    def test_can_search_by_id(self):
        self._create_some_records()
        self.assertEqual(self.odm.search(Fruit(id=self.pear.get_id())), [self.pear])

    def test_collections_default_to_class_name(self):
        basket = Basket(fruit_ids=[ObjectId(), ObjectId()], delivered_at=datetime(2023, 1, 2, 3, 4, 5))
        self.odm.create(basket)
        self.assertEqual(self.database["Basket"].count_documents({}), 1)
        stored = self.database["Basket"].find_one()
        # Nested IDs are stored as real ObjectIds.
        self.assertEqual(stored["fruit_ids"], basket.fruit_ids)
        self.assertEqual(self.odm.read(basket), basket)

    def test_custom_serializer(self):
        odm = Odm(self.database, Serializer({datetime: DateTimeCodec()}))
        picked_at = datetime(2023, 6, 1, 14, 22, 5, 123000, tzinfo=timezone.utc)
        kiwi = Fruit(name="kiwi", picked_at=picked_at)
        odm.create(kiwi)
        stored = self.database["fruits"].find_one({"_id": kiwi.get_id()})
        self.assertEqual(stored["picked_at"], "2023-06-01T14:22:05.123+0000")
        self.assertEqual(odm.read(kiwi).picked_at, picked_at)

    def test_unregistered_classes_are_rejected(self):
        carrot = Vegetable(id=ObjectId(), name="carrot")
        operations = [
            lambda: self.odm.create(carrot),
            lambda: self.odm.read(carrot),
            lambda: self.odm.update(carrot),
            lambda: self.odm.delete(carrot),
            lambda: self.odm.list(Vegetable),
            lambda: self.odm.search(carrot),
        ]
        for operation in operations:
            with self.assertRaises(ConfigurationError) as ctx:
                operation()
            self.assertIn("Vegetable", str(ctx.exception))

    def test_preconditions_are_checked_before_the_store_is_used(self):
        database = mock.MagicMock()
        odm = Odm(database)
        no_id = Fruit(name="apple")
        for operation in [odm.read, odm.update, odm.delete]:
            with self.assertRaises(CallerInputError):
                operation(no_id)
            with self.assertRaises(CallerInputError):
                operation(None)
        for operation in [odm.create, odm.search]:
            with self.assertRaises(CallerInputError):
                operation(None)
        # The database should not have been touched.
        self.assertEqual(database.mock_calls, [])

    def test_read_only(self):
        self._create_some_records()
        read_only_odm = Odm(self.database, read_only=True)
        # Should be able to retrieve the data, but not edit it in any way.
        self.assertEqual(len(read_only_odm.list(Fruit)), 3)
        self.assertEqual(read_only_odm.read(self.mango), self.mango)
        self.assertEqual(read_only_odm.search(Fruit(name="pear")), [self.pear])
        with self.assertRaises(AssertionError):
            read_only_odm.create(Fruit(name="kiwi"))
        with self.assertRaises(AssertionError):
            read_only_odm.update(self.mango)
        with self.assertRaises(AssertionError):
            read_only_odm.delete(self.mango)
        # The data should not have changed.
        self.assertEqual(len(self.odm.list(Fruit)), 3)

    def test_can_search_by_nested_model(self):
        box = Box(name="a", tag=Tag(text="x"))
        self.odm.create(box)
        self.odm.create(Box(name="b", tag=Tag(text="x", weight=2)))
        # The nested model is matched as a whole, including its defaulted `weight`.
        self.assertEqual(self.odm.search(Box(tag=Tag(text="x"))), [box])
        self.assertEqual(self.odm.search(Box(tag=Tag(text="x", weight=2)))[0].name, "b")
        self.assertEqual(self.odm.search(Box(tag=Tag(text="y"))), [])
        # Unset top-level fields still match anything.
        self.assertEqual(len(self.odm.search(Box())), 2)

    def test_can_read_non_finite_floats(self):
        boxes = [
            Box(name="inf", price=float("inf")),
            Box(name="-inf", price=float("-inf")),
            Box(name="nan", price=float("nan")),
        ]
        for box in boxes:
            self.odm.create(box)
        self.assertEqual(self.odm.read(boxes[0]), boxes[0])
        self.assertEqual(self.odm.read(boxes[1]), boxes[1])
        self.assertTrue(math.isnan(self.odm.read(boxes[2]).price))
        self.assertEqual(len(self.odm.list(Box)), 3)

    def test_aware_datetimes_are_read_back_as_naive_utc(self):
        kiwi = Fruit(name="kiwi", picked_at=datetime(2023, 6, 1, 16, 22, 5, tzinfo=timezone(timedelta(hours=2))))
        self.odm.create(kiwi)
        kiwi2 = self.odm.read(kiwi)
        self.assertEqual(kiwi2.picked_at, datetime(2023, 6, 1, 14, 22, 5))
        self.assertIsNone(kiwi2.picked_at.tzinfo)
        self.assertNotEqual(kiwi2, kiwi)

    def test_driver_errors_pass_through(self):
        self.odm.create(self.apple)
        duplicate = Fruit(id=self.apple.get_id(), name="apple")
        with self.assertRaises(mongomock.DuplicateKeyError):
            self.odm.create(duplicate)

    def _create_some_records(self):
        self.odm.create(self.apple)
        self.odm.create(self.mango)
        self.odm.create(self.pear)
