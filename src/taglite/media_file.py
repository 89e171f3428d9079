"""
MediaFile - one read/write surface over audio properties, the normalized tag,
the property map and complex properties of a media file.

| Source              | Access               | Key example      | Value type          |
|---------------------|----------------------|------------------|---------------------|
| audio_properties    | read only            | 'bitrate'        | int                 |
| tag                 | read/write           | 'title'          | str or int          |
| properties          | read/write (dynamic) | 'COMPOSER'       | List[str]           |
| complex properties  | read/write (dynamic) | 'PICTURE'        | List[Dict[str, ...]]|

Reads are lazy while the file is open. Writes are staged in memory and only
reach the file on save().

Example:
    with MediaFile.open('song.mp3', audio_properties=True) as mf:
        mf.sample_rate                 # 44100
        mf.title                       # 'A Title'
        mf['LANGUAGE']                 # 'English'
        mf.all_artists                 # ['Artist 1', 'Artist 2']
        mf.title = 'A New Title'       # saved when the block exits

    mf = MediaFile.read('song.mp3')    # closed, tag and properties retained
    mf.properties                      # {'TITLE': ['Title'], ...}
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .buffer import MutationBuffer
from .cache import LazyPropertyCache, Source
from .engine import MutagenEngine, TagEngine, TAG_PROPERTY_KEYS, leading_int
from .errors import CannotOpen, InvalidKey, KeyNotFound, NotWritable, ReadOnlyField
from .keys import AudioField, Key, PropertyKey, TagField, key_name, parse_accessor, resolve
from .models import AudioProperties, AudioTag, INT_TAG_FIELDS
from .utils import Config
from .variant import check_value_types, normalize_values

logger = logging.getLogger(__name__)

_MISSING = object()


def _tag_property(field: TagField) -> property:
    def getter(self):
        if field in self._mutations:
            return self._mutations.get(field)

        tag = self._cache.tag(allow_fetch=not self.closed)
        if tag is not None:
            return getattr(tag, field.value)

        # closed without the tag, try the property map instead
        props = self._cache.properties(allow_fetch=False) or {}
        vals = props.get(TAG_PROPERTY_KEYS[field.value])
        if not vals:
            return None
        return leading_int(vals[0]) if field.value in INT_TAG_FIELDS else vals[0]

    def setter(self, value):
        self.set(field, value)

    return property(getter, setter, doc=f"The {field.value} tag field, None if not set.")


def _audio_property(field: AudioField) -> property:
    def getter(self):
        if self._audio_properties is None:
            return None
        return getattr(self._audio_properties, field.value)

    def setter(self, value):
        raise ReadOnlyField(f"{field.value} is a read only audio property")

    return property(getter, setter, doc=f"Audio {field.value}, None if audio properties were not read.")


class MediaFile:
    """
    Property store facade over a TagEngine.

    Open/writable or open/read-only after construction, depending on the
    engine. Once closed, data fetched earlier stays readable and writes fail.
    """

    def __init__(
        self,
        file: Union[str, Path, Any],
        all: bool = False,
        audio_properties: Any = None,
        **retrieve: Any,
    ):
        """
        Args:
            file: path, binary stream, or an object implementing TagEngine
            all: retrieve everything available, including audio properties
            audio_properties: 'fast', 'average', 'accurate' or True for the
                configured default. Audio properties are only read when set.
            **retrieve: tag, properties, complex_property_keys; see retrieve()

        Raises:
            CannotOpen: if the engine cannot open the file
        """
        if audio_properties is None and all:
            audio_properties = True
        if audio_properties is True:
            audio_properties = Config.DEFAULT_READ_STYLE

        self._released = False
        self._engine = file if isinstance(file, TagEngine) else MutagenEngine(file, audio_properties)
        if not self._engine.is_valid():
            raise CannotOpen(f"could not open {file}")

        try:
            self._audio_properties: Optional[AudioProperties] = (
                self._engine.read_audio_properties() if audio_properties else None
            )
            self._cache = LazyPropertyCache(self._engine, lambda: not self.closed)
            self._mutations = MutationBuffer()
            self.retrieve(all=all, **retrieve)
        except BaseException:
            self._released = True
            self._engine.release()
            raise

    @classmethod
    def open(cls, file: Union[str, Path, Any], **options: Any) -> 'MediaFile':
        """Open a file. Use as a context manager to save on exit and always close."""
        return cls(file, **options)

    @classmethod
    def read(
        cls,
        file: Union[str, Path, Any],
        properties: bool = True,
        tag: bool = True,
        **options: Any,
    ) -> 'MediaFile':
        """Retrieve the requested data then close, returning a read only MediaFile."""
        with cls(file, properties=properties, tag=tag, **options) as mf:
            return mf

    def __enter__(self) -> 'MediaFile':
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            if exc_type is None and self.modified:
                self.save()
        finally:
            self.close()

    def __repr__(self) -> str:
        return f"<MediaFile closed={self.closed} modified={self.modified}>"

    def retrieve(
        self,
        all: bool = False,
        tag: Optional[bool] = None,
        properties: Optional[bool] = None,
        complex_property_keys: Any = _MISSING,
    ) -> 'MediaFile':
        """
        Fetch and cache data now rather than lazily.

        Args:
            all: default for the other options
            tag: fetch the tag
            properties: fetch the property map
            complex_property_keys: which keys to treat as complex properties
                - False: none
                - a list: exactly those keys, fetched now
                - True: fetch the key list now, but not the values
                - 'all': fetch the key list and all its values
                - 'lazy': forget the key list so it is fetched when needed
                - None: keep the current setting
        """
        if tag is None:
            tag = all
        if properties is None:
            properties = all
        if complex_property_keys is _MISSING:
            complex_property_keys = 'all' if all else None

        if properties:
            self._cache.properties(allow_fetch=not self.closed)
        if tag:
            self._cache.tag(allow_fetch=not self.closed)

        if self._retrieve_complex_property_keys(complex_property_keys):
            for key in self._cache.get(Source.COMPLEX_KEYS, allow_fetch=False) or []:
                self._cache.complex_property(key, allow_fetch=not self.closed)
        return self

    def _retrieve_complex_property_keys(self, keys: Any) -> bool:
        """Establish the complex key list, returning True when its values should be fetched."""
        if keys is None:
            return False
        if keys is False:
            self._cache.establish_complex_keys([])
            return False
        if isinstance(keys, (list, tuple)):
            self._cache.establish_complex_keys(keys)
            return True
        if keys == 'lazy':
            self._cache.establish_complex_keys(None)
            return False
        if keys is True or keys == 'all':
            self._cache.establish_complex_keys(None)
            self._cache.get(Source.COMPLEX_KEYS, allow_fetch=not self.closed)
            return keys == 'all'
        raise ValueError(f"complex_property_keys must be a bool, list, 'all' or 'lazy', got {keys!r}")

    # ---------- State ----------

    @property
    def closed(self) -> bool:
        return self._released or not self._engine.is_valid()

    @property
    def read_only(self) -> bool:
        return self.closed or self._engine.is_read_only()

    @property
    def writable(self) -> bool:
        return not self.read_only

    @property
    def modified(self) -> bool:
        """True if anything was set since the last save, even if unchanged."""
        return bool(self._mutations)

    @property
    def modifications(self) -> Dict[str, Any]:
        """Copy of the unsaved values."""
        return {key_name(k): v for k, v in self._mutations.items()}

    def close(self) -> 'MediaFile':
        """
        Release the engine, keeping previously fetched data readable.

        Unsaved modifications are logged and discarded. Closing again does nothing.
        """
        if self._released:
            return self
        try:
            if self._mutations:
                unsaved = [key_name(k) for k in self._mutations]
                logger.warning(f"Closing with unsaved properties {unsaved}")
                self._mutations.clear()
        finally:
            self._released = True
            self._engine.release()
        return self

    # ---------- Sources ----------

    @property
    def audio_properties(self) -> Optional[AudioProperties]:
        return self._audio_properties

    @property
    def tag(self) -> Optional[AudioTag]:
        """The normalized tag, or None if the file was closed before it was fetched."""
        return self._cache.tag(allow_fetch=not self.closed)

    @property
    def properties(self) -> Optional[Dict[str, List[str]]]:
        """The property map, or None if the file was closed before it was fetched."""
        return self._cache.properties(allow_fetch=not self.closed)

    @property
    def complex_properties(self) -> Dict[str, List[Dict[str, Any]]]:
        """Complex properties fetched so far."""
        return self._cache.complex_properties()

    def complex_property(self, key: str) -> Optional[List[Dict[str, Any]]]:
        return self._cache.complex_property(key, allow_fetch=not self.closed)

    @property
    def complex_property_keys(self) -> List[str]:
        """
        Keys treated as complex properties.

        Keys already fetched are always included. While open, the key list is
        fetched from the engine unless retrieve() established one.
        """
        return self._cache.complex_property_keys(allow_fetch=not self.closed)

    title = _tag_property(TagField.TITLE)
    artist = _tag_property(TagField.ARTIST)
    album = _tag_property(TagField.ALBUM)
    genre = _tag_property(TagField.GENRE)
    year = _tag_property(TagField.YEAR)
    track = _tag_property(TagField.TRACK)
    comment = _tag_property(TagField.COMMENT)

    audio_length = _audio_property(AudioField.AUDIO_LENGTH)
    bitrate = _audio_property(AudioField.BITRATE)
    sample_rate = _audio_property(AudioField.SAMPLE_RATE)
    channels = _audio_property(AudioField.CHANNELS)

    # ---------- Reads ----------

    def fetch_all(
        self,
        key: Any,
        default: Any = _MISSING,
        *,
        saved: bool = False,
        missing: Optional[Callable[[str], Any]] = None,
    ) -> Any:
        """
        Fetch a value, returning the full list for properties.

        Args:
            key: tag field, audio field or property name
            default: returned when key is not found
            saved: ignore unsaved modifications
            missing: called with the key name when key is not found

        Raises:
            InvalidKey: if key cannot be resolved
            KeyNotFound: if key is not found and neither default nor missing is given
        """
        key = resolve(key)
        value = self._lookup(key, saved)
        if value is _MISSING:
            return self._not_found(key, default, missing)
        return value

    def fetch(
        self,
        key: Any,
        default: Any = _MISSING,
        *,
        saved: bool = False,
        missing: Optional[Callable[[str], Any]] = None,
    ) -> Any:
        """Like fetch_all() but only the first value of a property is returned."""
        key = resolve(key)
        value = self._lookup(key, saved)
        if value is _MISSING:
            return self._not_found(key, default, missing)
        if isinstance(key, PropertyKey) and isinstance(value, list):
            return value[0] if value else None
        return value

    def _lookup(self, key: Key, saved: bool) -> Any:
        # staged values win, including staged deletes
        if not saved and key in self._mutations:
            return self._mutations.get(key)

        lazy = not self.closed
        if isinstance(key, PropertyKey):
            value = self._fetch_property(key.name, lazy)
        elif isinstance(key, TagField):
            tag = self._cache.tag(allow_fetch=lazy)
            value = getattr(tag, key.value) if tag is not None else None
        else:
            value = getattr(self._audio_properties, key.value) if self._audio_properties else None
        return _MISSING if value is None else value

    def get(self, key: Any, default: Any = None, all: bool = False, saved: bool = False) -> Any:
        if all:
            return self.fetch_all(key, default, saved=saved)
        return self.fetch(key, default, saved=saved)

    def __getitem__(self, key: Any) -> Any:
        return self.fetch(key)

    def _fetch_property(self, name: str, lazy: bool) -> Any:
        if name in self._cache.complex_property_keys(allow_fetch=lazy):
            return self._cache.complex_property(name, allow_fetch=lazy)
        props = self._cache.properties(allow_fetch=lazy) or {}
        return props.get(name)

    @staticmethod
    def _not_found(key: Key, default: Any, missing: Optional[Callable[[str], Any]]) -> Any:
        if missing is not None:
            return missing(key_name(key))
        if default is not _MISSING:
            return default
        raise KeyNotFound(key_name(key))

    def include(self, key: Any, saved: bool = False) -> bool:
        try:
            key = resolve(key)
        except InvalidKey:
            return False
        if not saved and key in self._mutations:
            return True

        lazy = not self.closed
        if isinstance(key, PropertyKey):
            return (
                key.name in self._cache.complex_property_keys(allow_fetch=lazy)
                or key.name in (self._cache.properties(allow_fetch=lazy) or {})
            )
        if isinstance(key, TagField):
            tag = self._cache.tag(allow_fetch=lazy)
            return tag is not None and getattr(tag, key.value) is not None
        return self._audio_properties is not None

    def __contains__(self, key: Any) -> bool:
        return self.include(key)

    def keys(self) -> List[str]:
        """All available keys: unsaved first, then audio, tag, property and complex keys."""
        lazy = not self.closed
        out = [key_name(k) for k in self._mutations]
        if self._audio_properties is not None:
            out.extend(AudioProperties.members())
        tag = self._cache.tag(allow_fetch=lazy)
        if tag is not None:
            out.extend(tag.to_dict())
        out.extend(self._cache.properties(allow_fetch=lazy) or {})
        out.extend(self._cache.complex_property_keys(allow_fetch=lazy))
        return list(dict.fromkeys(out))

    def items(self) -> List[Tuple[str, Any]]:
        pairs = []
        for key in self.keys():
            value = self.fetch_all(key, None)
            if value is not None:
                pairs.append((key, value))
        return pairs

    def __iter__(self):
        return iter(self.keys())

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.items())

    # ---------- Writes ----------

    def set(self, key: Any, value: Any) -> Any:
        """
        Stage a value, returning it in its normalized form.

        Property values may be a single value, a list or None (delete).
        Tag fields take a single str or int, None deletes.

        Raises:
            ReadOnlyField: for audio fields
            NotWritable: if the file is closed or read only
            InvalidValueType: if the value has the wrong type, nothing is staged
        """
        key = resolve(key)
        if isinstance(key, AudioField):
            raise ReadOnlyField(f"{key.value} is a read only audio property")
        self._check_writable()

        if isinstance(key, TagField):
            value = AudioTag.check_value(key.value, value)
        else:
            value = normalize_values(value)
            check_value_types(value)
        self._mutations.stage(key, value)
        return value

    def __setitem__(self, key: Any, value: Any) -> None:
        self.set(key, value)

    def delete(self, key: Any) -> Any:
        """Stage removal of key, returning its previous value or None if it was not set."""
        try:
            previous = self.fetch(key)
        except KeyNotFound:
            return None
        self.set(key, None)
        return previous

    def __delitem__(self, key: Any) -> None:
        self.set(key, None)

    def _check_writable(self) -> None:
        if self.closed:
            raise NotWritable("cannot write, file is closed")
        if self.read_only:
            raise NotWritable("cannot write, file is read only")

    # ---------- Commit ----------

    def save(self, replace_all: bool = False) -> 'MediaFile':
        """
        Push staged changes to the engine and persist them.

        Standard properties are sent first, then complex properties, then tag
        fields. Cached data is reset afterwards; audio properties are kept.
        On failure nothing is cleared, so save can be retried.

        Args:
            replace_all: staged properties replace every existing property

        Raises:
            NotWritable: if the file is closed or read only, even with nothing staged
            SaveError: if the engine cannot persist
        """
        if not self.writable:
            raise NotWritable("cannot save, file is not writable")

        standard, complex_, tag = self._mutations.partition(self._deleted_complex_candidates())
        if standard or replace_all:
            self._engine.merge_property_map(standard, replace_all)
        if complex_ or replace_all:
            self._engine.merge_complex_properties(complex_, replace_all)
        if tag:
            self._engine.merge_tag_fields(tag)
        self._engine.commit_to_storage()

        logger.debug(
            f"Saved {len(standard)} properties, {len(complex_)} complex properties, "
            f"{len(tag)} tag fields (replace_all={replace_all})"
        )
        self._mutations.clear()
        self._cache.clear()
        return self

    def _deleted_complex_candidates(self) -> List[str]:
        # deletes carry no values, so the key list decides if they are complex
        if any(isinstance(k, PropertyKey) and not v for k, v in self._mutations.items()):
            return self._cache.complex_property_keys(allow_fetch=True)
        return []

    def clear_all(self) -> 'MediaFile':
        """Remove every property from the file, discarding unsaved modifications."""
        if not self.writable:
            raise NotWritable("cannot clear, file is not writable")
        self._mutations.clear()
        return self.save(replace_all=True)

    # ---------- Dynamic access ----------

    def __getattr__(self, name: str) -> Any:
        # only called when normal lookup fails
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            key, all_values = parse_accessor(name)
        except InvalidKey as e:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}") from e
        return self.get(key, all=all_values)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith('_') or hasattr(type(self), name):
            object.__setattr__(self, name, value)
            return
        try:
            key, _ = parse_accessor(name)
        except InvalidKey as e:
            raise AttributeError(f"cannot set {name!r} on {type(self).__name__}") from e
        self.set(key, value)
