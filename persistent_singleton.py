import json
import os
import pickle
from enum import Enum
from inspect import getmodule
from types import UnionType
from typing import Any, get_type_hints, get_origin, get_args, Union


def deep_type_check(value: Any, expected_type: Any) -> bool:
    if expected_type is Any:
        return True
    origin = get_origin(expected_type)
    args = get_args(expected_type)
    if origin is Union or origin is UnionType:
        return any(deep_type_check(value, t) for t in args)
    if origin in {list, tuple, set}:
        return isinstance(value, origin) and all(deep_type_check(v, args[0]) for v in value)
    if origin is dict:
        return isinstance(value, dict) and all(
            deep_type_check(k, args[0]) and deep_type_check(v, args[1]) for k, v in value.items()
        )
    if expected_type is None or expected_type is type(None):
        return value is None
    return isinstance(value, expected_type)


class PersistenceSource(Enum):
    JSON = "json"
    PICKLE = "pickle"

    def __init__(self, persistence_type: str):
        match persistence_type:
            case "json":
                self.source = json
                self.format_modifier = ""
                self.dump_kwargs = {"indent": 2}
            case "pickle":
                self.source = pickle
                self.format_modifier = "b"
                self.dump_kwargs = {}

    def dump(self, path: os.PathLike, obj: Any):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w" + self.format_modifier) as f:
            self.source.dump(obj, f, **self.dump_kwargs)

    def load(self, path: os.PathLike):
        with open(path, "r" + self.format_modifier) as f:
            return self.source.load(f)


# Per-class machinery that must not be carried over from the decorated class
_CLASS_INTERNALS = {"__dict__", "__weakref__", "__annotations__", "__annotate__", "__annotate_func__",
                    "__annotations_cache__"}


def persistent_singleton(persistence_source: PersistenceSource, persistence_file: os.PathLike,
                         hot_reload: bool = False):
    """
    Turns a class of annotated fields into a single, uninstantiable settings object backed by a file.

    Fields are read and written as class attributes. Every write is type checked against the annotation (plain types
    are coerced) and immediately pushed to ``persistence_file``. If the file already exists it is loaded when the
    class is created, and with ``hot_reload`` it is reloaded before every read.
    """
    def wrapper(cls):
        if len(cls.__bases__) != 1 or cls.__bases__[0] != object:
            raise NotImplementedError("Can't create a persistent singleton subtype yet")

        namespace = {name: value for name, value in cls.__dict__.items() if name not in _CLASS_INTERNALS}
        namespace["__annotations__"] = get_type_hints(cls, globalns=vars(getmodule(cls)))

        singleton = PersistentSingleton(cls.__name__, (PersistentSingletonInstance,), namespace)
        singleton.__persistence_source__ = persistence_source
        singleton.__persistence_file_path__ = persistence_file
        singleton.__hot_reload__ = hot_reload
        if os.path.isfile(singleton.__persistence_file_path__):
            singleton.reload()
        return singleton

    return wrapper


class PersistentSingleton(type):
    __persistence_source__: PersistenceSource
    __persistence_file_path__: os.PathLike
    __hot_reload__: bool = False
    __singleton_fields__: dict[str, Any] = {}

    def __init__(cls, name, bases, namespace):
        super().__init__(name, bases, namespace)

        fields: dict[str, Any] = dict(namespace.get("__annotations__", {}))
        persistence_dict: dict[str, Any] = dict()
        for field_name in fields:
            if field_name in namespace:
                persistence_dict[field_name] = namespace[field_name]
                type.__delattr__(cls, field_name)
        type.__setattr__(cls, "__singleton_fields__", fields)
        type.__setattr__(cls, "__persistence_dict__", persistence_dict)

    def __call__(cls, *_args, **_kwargs):
        raise TypeError("Can't instantiate a persistent singleton")

    def __getattribute__(cls, attr):
        if not attr.startswith("__") and attr in super().__getattribute__("__singleton_fields__"):
            if super().__getattribute__("__hot_reload__") and \
                    os.path.isfile(super().__getattribute__("__persistence_file_path__")):
                cls.reload()
            persistence_dict = super().__getattribute__("__persistence_dict__")
            if attr in persistence_dict:
                return persistence_dict[attr]
            raise AttributeError(f"'{cls.__name__}.{attr}' has not been set")
        return super().__getattribute__(attr)

    def __setattr__(cls, attr, value):
        if attr in cls.__singleton_fields__:
            cls.__persistence_dict__[attr] = cls.checked_value(attr, value)
            cls.push()
        else:
            super().__setattr__(attr, value)

    def checked_value(cls, attr: str, value: Any) -> Any:
        expected_type = cls.__singleton_fields__[attr]
        if deep_type_check(value, expected_type):
            return value
        if type(expected_type) is type:
            return expected_type(value)
        raise TypeError(f"Expected type '{expected_type}' for attribute '{attr}', but got '{type(value)}'")


class PersistentSingletonInstance(metaclass=PersistentSingleton):
    @classmethod
    def push(cls):
        cls.__persistence_source__.dump(cls.__persistence_file_path__, cls.__persistence_dict__)

    @classmethod
    def reload(cls):
        loaded: dict[str, Any] = cls.__persistence_source__.load(cls.__persistence_file_path__)
        for key, value in loaded.items():
            if key in cls.__singleton_fields__:
                cls.__persistence_dict__[key] = cls.checked_value(key, value)
