# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import unittest

import jsonschema

from geodap.util.jsonschema import JsonArraySchema
from geodap.util.jsonschema import JsonBooleanSchema
from geodap.util.jsonschema import JsonComplexSchema
from geodap.util.jsonschema import JsonIntegerSchema
from geodap.util.jsonschema import JsonNumberSchema
from geodap.util.jsonschema import JsonObject
from geodap.util.jsonschema import JsonObjectSchema
from geodap.util.jsonschema import JsonStringSchema


class Tile(JsonObject):
    def __init__(self, index: int, url: str, bbox=None, cached: bool = False):
        self.index = index
        self.url = url
        self.bbox = bbox
        self.cached = cached

    @classmethod
    def get_schema(cls) -> JsonObjectSchema:
        return JsonObjectSchema(
            properties=dict(
                index=JsonIntegerSchema(minimum=0),
                url=JsonStringSchema(min_length=1),
                bbox=JsonArraySchema(
                    items=JsonNumberSchema(), min_items=4, max_items=4
                ),
                cached=JsonBooleanSchema(default=False),
            ),
            required=["index", "url"],
            additional_properties=False,
            factory=cls,
        )


class JsonComplexSchemaTest(unittest.TestCase):
    def test_one_of_required(self):
        with self.assertRaises(ValueError) as cm:
            JsonComplexSchema(one_of=[])
        self.assertEqual("one_of must be given", f"{cm.exception}")

    def test_to_dict(self):
        self.assertEqual(
            {"oneOf": [{"type": "integer"}, {"type": "string"}]},
            JsonComplexSchema(
                one_of=[JsonIntegerSchema(), JsonStringSchema()]
            ).to_dict(),
        )

    def test_serializer(self):
        schema = JsonComplexSchema(
            one_of=[JsonIntegerSchema(), JsonArraySchema(items=JsonIntegerSchema())],
            serializer=list,
        )
        self.assertEqual([2, 3], schema.to_instance((2, 3)))


class JsonNumberSchemaTest(unittest.TestCase):
    def test_invalid_type(self):
        with self.assertRaises(ValueError):
            JsonNumberSchema(type="string")

    def test_nullable_to_dict(self):
        self.assertEqual(
            {"type": ["number", "null"], "exclusiveMinimum": 0},
            JsonNumberSchema(exclusive_minimum=0, nullable=True).to_dict(),
        )
        self.assertEqual(
            {"type": "string", "minLength": 1, "enum": ["a", "b"]},
            JsonStringSchema(min_length=1, enum=["a", "b"]).to_dict(),
        )

    def test_from_instance_validates(self):
        schema = JsonIntegerSchema(minimum=1)
        self.assertEqual(3, schema.from_instance(3))
        with self.assertRaises(jsonschema.ValidationError):
            schema.from_instance(0)
        with self.assertRaises(jsonschema.ValidationError):
            schema.from_instance("3")


class JsonArraySchemaTest(unittest.TestCase):
    def test_tuple_validates_as_array(self):
        schema = JsonArraySchema(items=JsonNumberSchema(), min_items=2, max_items=2)
        self.assertEqual([1.0, 2.0], schema.to_instance((1.0, 2.0)))
        with self.assertRaises(jsonschema.ValidationError):
            schema.to_instance((1.0, 2.0, 3.0))


class JsonObjectTest(unittest.TestCase):
    def test_from_dict(self):
        tile = Tile.from_dict(dict(index=2, url="tile_2.nc", bbox=[0, 0, 90, 90]))
        self.assertIsInstance(tile, Tile)
        self.assertEqual(2, tile.index)
        self.assertEqual("tile_2.nc", tile.url)
        self.assertEqual([0, 0, 90, 90], tile.bbox)
        self.assertEqual(False, tile.cached)

    def test_from_dict_fails(self):
        with self.assertRaises(jsonschema.ValidationError):
            Tile.from_dict(dict(index=2))
        with self.assertRaises(jsonschema.ValidationError):
            Tile.from_dict(dict(index=2, url="tile_2.nc", color="red"))

    def test_to_dict(self):
        self.assertEqual(
            dict(index=1, url="tile_1.nc", cached=False),
            Tile(1, "tile_1.nc").to_dict(),
        )
        self.assertEqual(
            dict(index=1, url="tile_1.nc", bbox=[0, 0, 1, 1], cached=True),
            Tile(1, "tile_1.nc", bbox=(0, 0, 1, 1), cached=True).to_dict(),
        )
