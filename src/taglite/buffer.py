"""
Staged writes, held in memory until the store is saved.
"""

from typing import Any, Dict, Iterable, Iterator, List, Tuple

from .errors import ReadOnlyField
from .keys import AudioField, Key, TagField
from .variant import is_complex_value

Partition = Tuple[Dict[str, List[Any]], Dict[str, List[Any]], Dict[str, Any]]

UNSET = object()


class MutationBuffer:
    """
    Last-write-wins map of Key to pending value.

    Property values are lists (empty means delete) and tag field values are
    scalars (None means delete). Values must be validated before staging.
    """

    def __init__(self):
        self._staged: Dict[Key, Any] = {}

    def stage(self, key: Key, value: Any) -> None:
        if isinstance(key, AudioField):
            raise ReadOnlyField(f"{key.value} is a read only audio property")
        self._staged[key] = value

    def __contains__(self, key: Key) -> bool:
        return key in self._staged

    def get(self, key: Key, default: Any = UNSET) -> Any:
        return self._staged.get(key, default)

    def __len__(self) -> int:
        return len(self._staged)

    def __bool__(self) -> bool:
        return bool(self._staged)

    def __iter__(self) -> Iterator[Key]:
        return iter(list(self._staged))

    def items(self):
        return list(self._staged.items())

    def clear(self) -> None:
        self._staged.clear()

    def partition(self, complex_keys: Iterable[str] = ()) -> Partition:
        """
        Split staged values into (standard, complex, tag) groups.

        A property is complex when its values are maps, or when it is being
        deleted and its name is one of complex_keys.
        """
        complex_keys = set(complex_keys)
        standard, complex_, tag = {}, {}, {}
        for key, value in self._staged.items():
            if isinstance(key, TagField):
                tag[key.value] = value
            elif is_complex_value(value) or (not value and key.name in complex_keys):
                complex_[key.name] = list(value)
            else:
                standard[key.name] = list(value)
        return standard, complex_, tag
