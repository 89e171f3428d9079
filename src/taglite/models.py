"""
Value objects for audio properties and the normalized tag.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Union
from pathlib import Path

from .errors import InvalidValueType

INT_TAG_FIELDS = ('year', 'track')


@dataclass(frozen=True)
class AudioProperties:
    """Audio characteristics of a media file, read once when the file is opened."""

    audio_length: int = 0   # milliseconds
    bitrate: int = 0        # kb/s
    sample_rate: int = 0    # Hz
    channels: int = 0

    @classmethod
    def members(cls):
        return tuple(f.name for f in fields(cls))

    def to_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in self.members()}

    @classmethod
    def read(cls, file: Union[str, Path, Any], audio_properties: Any = 'average') -> Optional['AudioProperties']:
        """Open file, read only its audio properties and close it again."""
        if not audio_properties:
            raise ValueError("audio_properties must be one of 'fast', 'average', 'accurate'")

        from .media_file import MediaFile
        with MediaFile(file, audio_properties=audio_properties) as mf:
            return mf.audio_properties


@dataclass(frozen=True)
class AudioTag:
    """
    Normalized subset of tag fields.

    Empty strings and zero integers are stored as None so an absent field is
    always represented the same way.
    """

    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None
    track: Optional[int] = None
    comment: Optional[str] = None

    def __post_init__(self):
        for name in self.members():
            object.__setattr__(self, name, self.check_value(name, getattr(self, name)))

    @classmethod
    def members(cls):
        return tuple(f.name for f in fields(cls))

    @classmethod
    def check_value(cls, member: str, value: Any) -> Any:
        """Validate a value for a tag field, returning its normalized form."""
        if value is None:
            return None
        if member in INT_TAG_FIELDS:
            return cls._check_int_value(member, value)
        return cls._check_string_value(member, value)

    @staticmethod
    def _check_int_value(member: str, value: Any) -> Optional[int]:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidValueType(f"{member} must be a non-negative integer")
        return value or None

    @staticmethod
    def _check_string_value(member: str, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            raise InvalidValueType(f"{member} must be a string")
        return value or None

    def to_dict(self) -> Dict[str, Union[str, int]]:
        """The tag values, excluding absent fields."""
        out = {}
        for name in self.members():
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out

    @classmethod
    def read(cls, file: Union[str, Path, Any]) -> Optional['AudioTag']:
        """Open file, read only the tag and close it again."""
        from .media_file import MediaFile
        with MediaFile(file, tag=True) as mf:
            return mf.tag
