"""
Key resolution: maps identifiers to tag fields, audio fields or property names.

Lowercase names of the seven tag fields and four audio fields are reserved
for those fields. Any other string names a property (standard or complex).
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from .errors import InvalidKey


class TagField(str, Enum):
    """Normalized tag fields, readable and writable."""
    TITLE = 'title'
    ARTIST = 'artist'
    ALBUM = 'album'
    GENRE = 'genre'
    YEAR = 'year'
    TRACK = 'track'
    COMMENT = 'comment'


class AudioField(str, Enum):
    """Audio properties, read only."""
    AUDIO_LENGTH = 'audio_length'
    BITRATE = 'bitrate'
    SAMPLE_RATE = 'sample_rate'
    CHANNELS = 'channels'


@dataclass(frozen=True)
class PropertyKey:
    """Name of a standard or complex property, eg 'COMPOSER' or 'PICTURE'."""
    name: str

    def __str__(self) -> str:
        return self.name


Key = Union[TagField, AudioField, PropertyKey]

_TAG_FIELDS = {f.value: f for f in TagField}
_AUDIO_FIELDS = {f.value: f for f in AudioField}

# Attribute names for dynamic property access, eg all_artists or musicbrainz__album_id
DYNAMIC_ACCESSOR = re.compile(r'^(?P<all>all_)?(?P<key>[a-z_]+)$')


def resolve(identifier) -> Key:
    """
    Classify an identifier as exactly one kind of key.

    Args:
        identifier: a Key, a tag/audio field name, or a property name

    Raises:
        InvalidKey: if identifier is not a string or Key, or is empty
    """
    if isinstance(identifier, (TagField, AudioField, PropertyKey)):
        return identifier
    if not isinstance(identifier, str):
        raise InvalidKey(f"invalid key: {identifier!r}")
    if identifier in _TAG_FIELDS:
        return _TAG_FIELDS[identifier]
    if identifier in _AUDIO_FIELDS:
        return _AUDIO_FIELDS[identifier]
    if not identifier:
        raise InvalidKey("invalid key: empty string")
    return PropertyKey(identifier)


def key_name(key: Key) -> str:
    """Public identifier for a key, ie the inverse of resolve()."""
    if isinstance(key, PropertyKey):
        return key.name
    return key.value


def mangle(name: str) -> str:
    """
    Convert an accessor name to a property name.

    Single underscores are removed and double underscores kept as one, then
    the result is uppercased.

    Examples:
        >>> mangle('musicbrainz__album_id')
        'MUSICBRAINZ_ALBUMID'
        >>> mangle('title')
        'TITLE'
    """
    return name.replace('__', '~').replace('_', '').upper().replace('~', '_')


def parse_accessor(name: str) -> Tuple[PropertyKey, bool]:
    """
    Resolve a dynamic accessor name.

    Returns:
        (property key, all) where all is True for an 'all_' prefix

    Raises:
        InvalidKey: if name contains characters outside [a-z_]
    """
    match = DYNAMIC_ACCESSOR.match(name)
    if not match:
        raise InvalidKey(f"cannot resolve accessor: {name!r}")
    return PropertyKey(mangle(match.group('key'))), bool(match.group('all'))
