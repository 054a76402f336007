# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import collections.abc
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Union
from collections.abc import Mapping, Sequence

import jsonschema

from geodap.util.assertions import assert_instance
from geodap.util.undefined import UNDEFINED

Factory = Callable[..., Any]
Serializer = Callable[..., Any]

_NUMERIC_TYPES = ("integer", "number")


def _new_validator_class():
    # Tuples, e.g. bounding boxes and cell sizes, are arrays too
    base_validator = jsonschema.validators.Draft7Validator
    type_checker = base_validator.TYPE_CHECKER.redefine(
        "array", lambda checker, inst: isinstance(inst, (list, tuple))
    )
    return jsonschema.validators.extend(base_validator, type_checker=type_checker)


_VALIDATOR_CLASS = _new_validator_class()


class JsonSchema(ABC):
    """Base class for the schemas of catalog entries and fetch options.

    A schema validates JSON values and converts between JSON values
    and Python objects, using *factory* for the direction JSON to Python
    and *serializer* for the direction Python to JSON.
    """

    # noinspection PyShadowingBuiltins
    def __init__(
        self,
        type: Optional[str] = None,
        default: Any = UNDEFINED,
        enum: Sequence[Any] = None,
        nullable: bool = False,
        factory: Factory = None,
        serializer: Serializer = None,
    ):
        self.type = type
        self.default = default
        self.enum = list(enum) if enum is not None else None
        self.nullable = nullable
        self.factory = factory
        self.serializer = serializer

    def to_dict(self) -> dict[str, Any]:
        d = dict()
        if self.type is not None:
            d.update(type=[self.type, "null"] if self.nullable else self.type)
        if self.default != UNDEFINED:
            d.update(default=self.default)
        if self.enum is not None:
            d.update(enum=self.enum)
        return d

    def validate_instance(self, instance: Any):
        """Raises ``jsonschema.ValidationError`` if *instance* is invalid."""
        jsonschema.validate(
            instance=instance, schema=self.to_dict(), cls=_VALIDATOR_CLASS
        )

    def to_instance(self, value: Any) -> Any:
        instance = self._to_unvalidated_instance(value)
        self.validate_instance(instance)
        return instance

    def from_instance(self, instance: Any) -> Any:
        self.validate_instance(instance)
        return self._from_validated_instance(instance)

    def _to_unvalidated_instance(self, value: Any) -> Any:
        return self.serializer(value) if self.serializer is not None else value

    def _from_validated_instance(self, instance: Any) -> Any:
        return self.factory(instance) if self.factory is not None else instance


class JsonComplexSchema(JsonSchema):
    """A value that must match exactly one of the schemas
    in *one_of*, such as a scalar or an (x, y) pair.
    """

    def __init__(self, one_of: Sequence[JsonSchema], **kwargs):
        if not one_of:
            raise ValueError("one_of must be given")
        super().__init__(**kwargs)
        self.one_of = list(one_of)

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d.update(oneOf=[schema.to_dict() for schema in self.one_of])
        return d


class JsonBooleanSchema(JsonSchema):
    def __init__(self, **kwargs):
        super().__init__(type="boolean", **kwargs)


class JsonStringSchema(JsonSchema):
    def __init__(self, min_length: int = None, **kwargs):
        super().__init__(type="string", **kwargs)
        self.min_length = min_length

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        if self.min_length is not None:
            d.update(minLength=self.min_length)
        return d


class JsonNumberSchema(JsonSchema):
    # noinspection PyShadowingBuiltins
    def __init__(
        self,
        type: str = "number",
        minimum: Union[int, float] = None,
        exclusive_minimum: Union[int, float] = None,
        **kwargs,
    ):
        if type not in _NUMERIC_TYPES:
            raise ValueError(f"type must be one of {_NUMERIC_TYPES}, was {type!r}")
        super().__init__(type=type, **kwargs)
        self.minimum = minimum
        self.exclusive_minimum = exclusive_minimum

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        if self.minimum is not None:
            d.update(minimum=self.minimum)
        if self.exclusive_minimum is not None:
            d.update(exclusiveMinimum=self.exclusive_minimum)
        return d


class JsonIntegerSchema(JsonNumberSchema):
    def __init__(self, **kwargs):
        super().__init__(type="integer", **kwargs)


class JsonArraySchema(JsonSchema):
    """An array whose items all match *items*."""

    def __init__(
        self,
        items: JsonSchema = None,
        min_items: int = None,
        max_items: int = None,
        **kwargs,
    ):
        super().__init__(type="array", **kwargs)
        self.items = items
        self.min_items = min_items
        self.max_items = max_items

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        if self.items is not None:
            d.update(items=self.items.to_dict())
        if self.min_items is not None:
            d.update(minItems=self.min_items)
        if self.max_items is not None:
            d.update(maxItems=self.max_items)
        return d

    def _to_unvalidated_instance(self, value: Optional[Sequence[Any]]) -> Any:
        if value is None or self.items is None:
            return value if value is None else list(value)
        return [self.items._to_unvalidated_instance(item) for item in value]

    def _from_validated_instance(self, instance: Optional[Sequence[Any]]) -> Any:
        if instance is None or self.items is None:
            return instance
        return [self.items._from_validated_instance(item) for item in instance]


class JsonObjectSchema(JsonSchema):
    """An object with the given *properties*.

    If *factory* is given, validated instances are passed to it as
    keyword arguments. In the other direction, the object's attributes
    named by *properties* are used; attributes that are None are left
    out unless *required*.
    """

    def __init__(
        self,
        properties: Mapping[str, JsonSchema] = None,
        additional_properties: bool = True,
        required: Sequence[str] = None,
        **kwargs,
    ):
        super().__init__(type="object", **kwargs)
        self.properties = dict(properties) if properties else dict()
        self.additional_properties = additional_properties
        self.required = list(required) if required else []

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        if self.properties:
            d.update(properties={k: v.to_dict() for k, v in self.properties.items()})
        if not self.additional_properties:
            d.update(additionalProperties=False)
        if self.required:
            d.update(required=list(self.required))
        return d

    def _to_unvalidated_instance(self, value: Any) -> Optional[Mapping[str, Any]]:
        if value is None:
            return None
        if isinstance(value, collections.abc.Mapping):
            mapping = value
        else:
            mapping = {}
            for name in self.properties.keys():
                property_value = getattr(value, name, None)
                if property_value is not None or name in self.required:
                    mapping[name] = property_value
        return self._convert_mapping(mapping, "_to_unvalidated_instance")

    def _from_validated_instance(self, instance: Optional[Mapping[str, Any]]) -> Any:
        if instance is None:
            return None
        obj = self._convert_mapping(instance, "_from_validated_instance")
        return self.factory(**obj) if self.factory is not None else obj

    def _convert_mapping(
        self, mapping: Mapping[str, Any], method_name: str
    ) -> dict[str, Any]:
        converted = dict()
        for name, schema in self.properties.items():
            if name in mapping:
                converted[name] = getattr(schema, method_name)(mapping[name])
            elif schema.default != UNDEFINED:
                converted[name] = getattr(schema, method_name)(schema.default)
        if self.additional_properties:
            for name, value in mapping.items():
                converted.setdefault(name, value)
        return converted


class JsonObject(ABC):
    """Base class for objects that are read from and written to
    JSON-serializable dictionaries, such as catalog entries and
    fetch options.

    Derived classes implement :meth:`get_schema`, which must return
    a :class:`JsonObjectSchema` whose *factory* creates instances
    of the class.
    """

    @classmethod
    @abstractmethod
    def get_schema(cls) -> JsonObjectSchema:
        """Get JSON object schema."""

    @classmethod
    def from_dict(cls, value: Mapping[str, Any]) -> "JsonObject":
        assert_instance(value, collections.abc.Mapping, name="value")
        return cls.get_schema().from_instance(dict(value))

    def to_dict(self) -> dict[str, Any]:
        return self.get_schema().to_instance(self)
