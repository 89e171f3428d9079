"""taglite - one lazy, buffered view over audio file metadata."""

__version__ = "0.1.0"

from .errors import (
    TagliteError,
    CannotOpen,
    InvalidKey,
    InvalidValueType,
    NotWritable,
    ReadOnlyField,
    KeyNotFound,
    SaveError,
)
from .models import AudioProperties, AudioTag
from .keys import TagField, AudioField, PropertyKey, resolve, mangle
from .engine import TagEngine, MutagenEngine
from .media_file import MediaFile
from .utils import Config

__all__ = [
    "TagliteError",
    "CannotOpen",
    "InvalidKey",
    "InvalidValueType",
    "NotWritable",
    "ReadOnlyField",
    "KeyNotFound",
    "SaveError",
    "AudioProperties",
    "AudioTag",
    "TagField",
    "AudioField",
    "PropertyKey",
    "resolve",
    "mangle",
    "TagEngine",
    "MutagenEngine",
    "MediaFile",
    "Config",
]
