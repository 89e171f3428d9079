"""
Lazy, memoized storage for the data read from a tag engine.

Every entry is in one of three states: not yet fetched, fetched and present,
or fetched and absent. The engine is asked at most once per entry until the
cache is cleared, and never once the store is closed.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class EntryState(Enum):
    UNFETCHED = 'unfetched'
    PRESENT = 'present'
    ABSENT = 'absent'


class Source(Enum):
    """The kinds of data a cache holds."""
    TAG = 'tag'
    PROPERTIES = 'properties'
    COMPLEX_KEYS = 'complex_keys'
    COMPLEX_PROPERTY = 'complex_property'


@dataclass
class CacheEntry:
    state: EntryState = EntryState.UNFETCHED
    value: Any = None

    def fill(self, value: Any) -> None:
        self.state = EntryState.ABSENT if value is None else EntryState.PRESENT
        self.value = value

    @property
    def fetched(self) -> bool:
        return self.state is not EntryState.UNFETCHED


class LazyPropertyCache:
    """
    Per open interval cache of tag, property map, complex key list and
    individual complex properties.

    Absent values are returned as None.
    """

    def __init__(self, engine: Any, is_open: Callable[[], bool]):
        self._engine = engine
        self._is_open = is_open
        self._readers = {
            Source.TAG: engine.read_tag,
            Source.PROPERTIES: lambda: _copy_property_map(engine.read_property_map()),
            Source.COMPLEX_KEYS: lambda: list(engine.read_complex_property_keys() or []),
        }
        self._entries: Dict[Source, CacheEntry] = {}
        self._complex: Dict[str, CacheEntry] = {}
        self.clear()

    def clear(self) -> None:
        """Forget everything fetched so far."""
        self._entries = {source: CacheEntry() for source in self._readers}
        self._complex = {}

    def get(self, source: Source, key: Optional[str] = None, allow_fetch: bool = True) -> Any:
        """
        Return the cached value for source (and key for complex properties).

        The engine is only asked when the entry was never fetched, allow_fetch
        is set and the store is still open.
        """
        if source is Source.COMPLEX_PROPERTY:
            return self._complex_property(key, allow_fetch)

        entry = self._entries[source]
        if not entry.fetched:
            if not (allow_fetch and self._is_open()):
                return None
            logger.debug(f"Fetching {source.value} from engine")
            entry.fill(self._readers[source]())
        return entry.value

    def state(self, source: Source, key: Optional[str] = None) -> EntryState:
        if source is Source.COMPLEX_PROPERTY:
            entry = self._complex.get(key)
            return entry.state if entry else EntryState.UNFETCHED
        return self._entries[source].state

    def tag(self, allow_fetch: bool = True):
        return self.get(Source.TAG, allow_fetch=allow_fetch)

    def properties(self, allow_fetch: bool = True) -> Optional[Dict[str, List[str]]]:
        return self.get(Source.PROPERTIES, allow_fetch=allow_fetch)

    def complex_property(self, key: str, allow_fetch: bool = True) -> Optional[List[Dict[str, Any]]]:
        return self.get(Source.COMPLEX_PROPERTY, key, allow_fetch=allow_fetch)

    def _complex_property(self, key: str, allow_fetch: bool) -> Any:
        entry = self._complex.get(key)
        if entry is None or not entry.fetched:
            if not (allow_fetch and self._is_open()):
                return None
            known = self._entries[Source.COMPLEX_KEYS]
            if known.state is EntryState.PRESENT and key not in known.value:
                return None
            entry = self._complex.setdefault(key, CacheEntry())
            logger.debug(f"Fetching complex property {key} from engine")
            entry.fill(self._engine.read_complex_property(key) or None)
        return entry.value

    def complex_property_keys(self, allow_fetch: bool = True) -> List[str]:
        """
        Keys treated as complex properties.

        Keys already fetched are always included. The known key list is only
        consulted (and fetched if needed) when allow_fetch is set.
        """
        keys = [k for k, e in self._complex.items() if e.state is EntryState.PRESENT]
        if allow_fetch:
            for k in self.get(Source.COMPLEX_KEYS) or []:
                if k not in keys:
                    keys.append(k)
        return keys

    def complex_properties(self) -> Dict[str, List[Dict[str, Any]]]:
        """Complex properties fetched so far."""
        return {k: e.value for k, e in self._complex.items() if e.state is EntryState.PRESENT}

    def establish_complex_keys(self, keys: Optional[Iterable[str]]) -> None:
        """Set the known complex key list, or forget it when keys is None."""
        entry = self._entries[Source.COMPLEX_KEYS]
        if keys is None:
            self._entries[Source.COMPLEX_KEYS] = CacheEntry()
        else:
            entry.fill(list(keys))


def _copy_property_map(props: Optional[Dict[str, List[str]]]) -> Optional[Dict[str, List[str]]]:
    # keys with no values do not exist
    if props is None:
        return None
    return {k: list(v) for k, v in props.items() if v}
