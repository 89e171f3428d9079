"""
Tag engines: the primitive get/set layer a MediaFile works on top of.

MutagenEngine handles MP3/WAV/AIFF (ID3), M4A/MP4, FLAC, Ogg Vorbis/Opus,
WMA (ASF) and APEv2 tagged files. Each format stores tags differently, so
native tags are translated to and from a TagLib-style property map with
uppercase keys (eg "TITLE", "TRACKNUMBER", "MUSICBRAINZ_ALBUMID").
"""

import base64
import os
import re
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable

import mutagen
import mutagen.id3 as id3
import mutagen.mp4 as mp4
import mutagen.flac as flac
import mutagen.ogg as ogg
import mutagen.asf as asf
import mutagen.apev2 as apev2

from .errors import SaveError, TagliteError
from .models import AudioProperties, AudioTag
from .utils import Config, READ_STYLES
from .variant import ComplexPropertyValues, PropertyValues, VariantMap

logger = logging.getLogger(__name__)

PropertyMap = Dict[str, PropertyValues]
ComplexPropertyMap = Dict[str, ComplexPropertyValues]


@runtime_checkable
class TagEngine(Protocol):
    """The operations a MediaFile needs from the library that parses media files."""

    def is_valid(self) -> bool: ...

    def is_read_only(self) -> bool: ...

    def read_audio_properties(self) -> Optional[AudioProperties]: ...

    def read_tag(self) -> Optional[AudioTag]: ...

    def read_property_map(self) -> PropertyMap: ...

    def read_complex_property_keys(self) -> List[str]: ...

    def read_complex_property(self, key: str) -> ComplexPropertyValues: ...

    def merge_tag_fields(self, fields: Dict[str, Any]) -> None: ...

    def merge_property_map(self, props: PropertyMap, replace_all: bool = False) -> None: ...

    def merge_complex_properties(self, props: ComplexPropertyMap, replace_all: bool = False) -> None: ...

    def commit_to_storage(self) -> None: ...

    def release(self) -> None: ...


# ---------- Native key tables ----------

# ID3 text frames with a fixed property name
ID3_FRAMES = {
    'TIT2': 'TITLE',
    'TPE1': 'ARTIST',
    'TALB': 'ALBUM',
    'TPE2': 'ALBUMARTIST',
    'TCON': 'GENRE',
    'TCOM': 'COMPOSER',
    'TDRC': 'DATE',
    'TDOR': 'ORIGINALDATE',
    'TRCK': 'TRACKNUMBER',
    'TPOS': 'DISCNUMBER',
    'TIT1': 'GROUPING',
    'TIT3': 'SUBTITLE',
    'TPE3': 'CONDUCTOR',
    'TPE4': 'REMIXER',
    'TEXT': 'LYRICIST',
    'TBPM': 'BPM',
    'TCOP': 'COPYRIGHT',
    'TENC': 'ENCODEDBY',
    'TSRC': 'ISRC',
    'TPUB': 'LABEL',
    'TMOO': 'MOOD',
    'TLAN': 'LANGUAGE',
    'TKEY': 'INITIALKEY',
    'TMED': 'MEDIA',
    'TCMP': 'COMPILATION',
    'TSOA': 'ALBUMSORT',
    'TSOP': 'ARTISTSORT',
    'TSOT': 'TITLESORT',
    'TSO2': 'ALBUMARTISTSORT',
    'TSOC': 'COMPOSERSORT',
}

MP4_ATOMS = {
    '\xa9nam': 'TITLE',
    '\xa9ART': 'ARTIST',
    '\xa9alb': 'ALBUM',
    'aART': 'ALBUMARTIST',
    '\xa9gen': 'GENRE',
    '\xa9cmt': 'COMMENT',
    '\xa9day': 'DATE',
    '\xa9wrt': 'COMPOSER',
    '\xa9lyr': 'LYRICS',
    '\xa9grp': 'GROUPING',
    '\xa9too': 'ENCODEDBY',
    'cprt': 'COPYRIGHT',
    'soal': 'ALBUMSORT',
    'soar': 'ARTISTSORT',
    'sonm': 'TITLESORT',
    'soaa': 'ALBUMARTISTSORT',
    'soco': 'COMPOSERSORT',
}

# MP4 stores track/disc as tuples: (number, total)
MP4_PAIR_ATOMS = {'trkn': 'TRACKNUMBER', 'disk': 'DISCNUMBER'}

ASF_ATTRIBUTES = {
    'Title': 'TITLE',
    'Author': 'ARTIST',
    'WM/AlbumTitle': 'ALBUM',
    'WM/AlbumArtist': 'ALBUMARTIST',
    'WM/Genre': 'GENRE',
    'Description': 'COMMENT',
    'WM/Composer': 'COMPOSER',
    'WM/Year': 'DATE',
    'WM/TrackNumber': 'TRACKNUMBER',
    'WM/PartOfSet': 'DISCNUMBER',
    'Copyright': 'COPYRIGHT',
    'WM/Lyrics': 'LYRICS',
    'WM/Conductor': 'CONDUCTOR',
    'WM/ContentGroupDescription': 'GROUPING',
    'WM/SubTitle': 'SUBTITLE',
    'WM/BeatsPerMinute': 'BPM',
    'WM/Publisher': 'LABEL',
    'WM/Mood': 'MOOD',
    'WM/ISRC': 'ISRC',
    'MusicBrainz/Album Id': 'MUSICBRAINZ_ALBUMID',
    'MusicBrainz/Artist Id': 'MUSICBRAINZ_ARTISTID',
    'MusicBrainz/Album Artist Id': 'MUSICBRAINZ_ALBUMARTISTID',
    'MusicBrainz/Release Group Id': 'MUSICBRAINZ_RELEASEGROUPID',
    'MusicBrainz/Track Id': 'MUSICBRAINZ_TRACKID',
}

APE_KEYS = {
    'TRACK': 'TRACKNUMBER',
    'YEAR': 'DATE',
    'DISC': 'DISCNUMBER',
    'ALBUM ARTIST': 'ALBUMARTIST',
}

# Free-text keys (ID3 TXXX descriptions, MP4 freeform names) with a conventional spelling
FREEFORM_NAMES = {
    'MUSICBRAINZ_ALBUMID': 'MusicBrainz Album Id',
    'MUSICBRAINZ_ARTISTID': 'MusicBrainz Artist Id',
    'MUSICBRAINZ_ALBUMARTISTID': 'MusicBrainz Album Artist Id',
    'MUSICBRAINZ_RELEASEGROUPID': 'MusicBrainz Release Group Id',
    'MUSICBRAINZ_RELEASETRACKID': 'MusicBrainz Release Track Id',
    'MUSICBRAINZ_WORKID': 'MusicBrainz Work Id',
    'RELEASECOUNTRY': 'MusicBrainz Album Release Country',
    'RELEASESTATUS': 'MusicBrainz Album Status',
    'RELEASETYPE': 'MusicBrainz Album Type',
    'ACOUSTID_ID': 'Acoustid Id',
}
_FREEFORM_LOOKUP = {v.upper(): k for k, v in FREEFORM_NAMES.items()}

# Tag fields are views over these properties
TAG_PROPERTY_KEYS = {
    'title': 'TITLE',
    'artist': 'ARTIST',
    'album': 'ALBUM',
    'genre': 'GENRE',
    'year': 'DATE',
    'track': 'TRACKNUMBER',
    'comment': 'COMMENT',
}

PICTURE = 'PICTURE'

# Index is the ID3/FLAC picture type number
PICTURE_TYPES = [
    'Other', 'File Icon', 'Other File Icon', 'Front Cover', 'Back Cover',
    'Leaflet Page', 'Media', 'Lead Artist', 'Artist', 'Conductor', 'Band',
    'Composer', 'Lyricist', 'Recording Location', 'During Recording',
    'During Performance', 'Movie Screen Capture', 'Colored Fish',
    'Illustration', 'Band Logo', 'Publisher Logo',
]
FRONT_COVER = 3

_LEADING_INT = re.compile(r'^\s*(\d+)')


def freeform_to_key(name: str) -> str:
    """Property key for an ID3 TXXX description or MP4 freeform name."""
    upper = name.strip().upper()
    return _FREEFORM_LOOKUP.get(upper, upper)


def key_to_freeform(key: str) -> str:
    return FREEFORM_NAMES.get(key, key)


def leading_int(value: Optional[str]) -> Optional[int]:
    """
    Integer at the start of a string, eg the year of a date or the number of "3/12".

    Examples:
        >>> leading_int('2025-01-02')
        2025
        >>> leading_int('3/12')
        3
        >>> leading_int('n/a') is None
        True
    """
    if value is None:
        return None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def parse_pair(value: Optional[str]) -> tuple:
    """Parse "N/Total" into (N, Total) with 0 for missing parts."""
    if not value:
        return 0, 0
    parts = str(value).split('/')
    number = leading_int(parts[0]) or 0
    total = leading_int(parts[1]) if len(parts) > 1 else None
    return number, total or 0


def picture_type_name(value: Any) -> str:
    try:
        return PICTURE_TYPES[int(value)]
    except (ValueError, TypeError, IndexError):
        return PICTURE_TYPES[0]


def picture_type_number(value: Any) -> int:
    """Picture type number from a name ("Back Cover") or number, defaulting to front cover."""
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < len(PICTURE_TYPES):
        return value
    if isinstance(value, str):
        for i, name in enumerate(PICTURE_TYPES):
            if name.lower() == value.strip().lower():
                return i
    return FRONT_COVER


def _as_bytes(data: Any) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, str):
        return data.encode('utf-8')
    return b''


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')
    return str(value)


class MutagenEngine:
    """
    TagEngine backed by mutagen.

    Opens a path or a seekable binary stream. The stream is never closed by
    the engine since it did not open it.
    """

    def __init__(self, file: Union[str, Path, Any], audio_properties: Any = None):
        if audio_properties not in (None, False, True) and audio_properties not in READ_STYLES:
            raise ValueError(f"audio_properties must be one of {', '.join(READ_STYLES)}")

        self._mfile = None
        self._path: Optional[Path] = None
        self._fileobj = None
        self._read_only = True
        # complex keys reported during this handle's lifetime; never shrinks
        self._known_complex_keys: List[str] = []

        if hasattr(file, 'read') and hasattr(file, 'seek'):
            self._fileobj = file
            self.name = str(getattr(file, 'name', '<stream>'))
        elif isinstance(file, (str, os.PathLike)):
            self.name = os.fspath(file)
            self._path = Path(file) if self.name else None
        else:
            raise TypeError(f"expects str, PathLike or file object, got {type(file).__name__}")

        self.load_file()

    def load_file(self) -> None:
        """Load the file with mutagen, leaving the engine invalid on failure."""
        try:
            if self._fileobj is not None:
                self._fileobj.seek(0)
                self._mfile = mutagen.File(self._fileobj)
            elif self._path is not None:
                self._mfile = mutagen.File(self._path)
        except (mutagen.MutagenError, OSError) as e:
            logger.debug(f"mutagen could not open {self.name}: {e}")
            self._mfile = None

        if self._mfile is None:
            return

        if self._fileobj is not None:
            writable = getattr(self._fileobj, 'writable', None)
            self._read_only = not (writable() if callable(writable) else True)
        else:
            self._read_only = not os.access(self._path, os.W_OK)

    def __repr__(self) -> str:
        if not self.is_valid():
            return "<MutagenEngine valid=False>"
        return f"<MutagenEngine {self.name!r} type={type(self._mfile).__name__}>"

    # ---------- Handle ----------

    def is_valid(self) -> bool:
        return self._mfile is not None

    def is_read_only(self) -> bool:
        self._raise_invalid()
        return self._read_only

    def release(self) -> None:
        """Drop the mutagen object. Safe to call more than once."""
        self._mfile = None
        self._fileobj = None

    def _raise_invalid(self) -> None:
        if not self.is_valid():
            raise TagliteError("tag engine is closed or invalid")

    def _ensure_tags_exist(self) -> None:
        """Ensure the file has a tags object, creating if necessary."""
        if self._mfile.tags is not None:
            return
        try:
            self._mfile.add_tags()
        except (mutagen.MutagenError, AttributeError, NotImplementedError) as e:
            raise TagliteError(f"cannot add tags to {self.name}: {e}") from e

    def _kind(self) -> Optional[str]:
        """Which native tag layout the file uses, or None if it has no tags."""
        tags = self._mfile.tags
        if tags is None:
            return None
        if isinstance(tags, mp4.MP4Tags):
            return 'mp4'
        if isinstance(tags, id3.ID3):                          # MP3 / WAV / AIFF
            return 'id3'
        if isinstance(tags, asf.ASFTags):
            return 'asf'
        if isinstance(tags, apev2.APEv2):
            return 'ape'
        if isinstance(self._mfile, (flac.FLAC, ogg.OggFileType)):
            return 'vorbis'
        return None

    # ---------- Audio properties ----------

    def read_audio_properties(self) -> Optional[AudioProperties]:
        self._raise_invalid()
        info = getattr(self._mfile, 'info', None)
        if info is None:
            return None
        return AudioProperties(
            audio_length=int(round((getattr(info, 'length', 0) or 0) * 1000)),
            bitrate=int((getattr(info, 'bitrate', 0) or 0) // 1000),
            sample_rate=int(getattr(info, 'sample_rate', 0) or 0),
            channels=int(getattr(info, 'channels', 0) or 0),
        )

    # ---------- Tag ----------

    def read_tag(self) -> Optional[AudioTag]:
        props = self.read_property_map()

        def text(key: str) -> Optional[str]:
            vals = props.get(key)
            return Config.TAG_VALUE_SEPARATOR.join(vals) if vals else None

        def number(key: str) -> Optional[int]:
            vals = props.get(key)
            return leading_int(vals[0]) if vals else None

        return AudioTag(
            title=text('TITLE'),
            artist=text('ARTIST'),
            album=text('ALBUM'),
            genre=text('GENRE'),
            year=number('DATE'),
            track=number('TRACKNUMBER'),
            comment=text('COMMENT'),
        )

    def merge_tag_fields(self, fields: Dict[str, Any]) -> None:
        """Overwrite only the supplied tag fields; None removes a field."""
        updates = {}
        for field, value in fields.items():
            if field not in TAG_PROPERTY_KEYS:
                raise KeyError(f"Unknown tag field: {field}")
            updates[TAG_PROPERTY_KEYS[field]] = [] if value is None else [str(value)]
        self.merge_property_map(updates)

    # ---------- Property map ----------

    def read_property_map(self) -> PropertyMap:
        self._raise_invalid()
        tags = self._mfile.tags
        kind = self._kind()
        if kind is None:
            return {}

        readers = {
            'id3': self._read_id3_properties,
            'mp4': self._read_mp4_properties,
            'vorbis': self._read_vorbis_properties,
            'asf': self._read_asf_properties,
            'ape': self._read_ape_properties,
        }
        collected: PropertyMap = {}
        for key, vals in readers[kind](tags):
            vals = [v for v in vals if v != '']
            # unnamed entries (eg TXXX with an empty description) have no key to list
            if key and vals:
                collected.setdefault(key, []).extend(vals)
        return collected

    def merge_property_map(self, props: PropertyMap, replace_all: bool = False) -> None:
        """
        Replace the given keys, or everything when replace_all is set. Empty lists remove a key.

        Native entries of keys whose values are unchanged are left as they are,
        and rewritten entries keep their native names where the format has them.
        """
        self._raise_invalid()
        current = self.read_property_map()
        changes: PropertyMap = {key: [] for key in current} if replace_all else {}
        for key, vals in props.items():
            key, vals = key.upper(), [str(v) for v in vals]
            if replace_all or current.get(key, []) != vals:
                changes[key] = vals

        if not changes and not replace_all:
            return
        if self._mfile.tags is None and not any(changes.values()):
            return
        self._ensure_tags_exist()

        writers = {
            'id3': self._write_id3_properties,
            'mp4': self._write_mp4_properties,
            'vorbis': self._write_vorbis_properties,
            'asf': self._write_asf_properties,
            'ape': self._write_ape_properties,
        }
        kind = self._kind()
        if kind is None:
            raise TagliteError(f"cannot write properties to {type(self._mfile).__name__} files")
        writers[kind](self._mfile.tags, changes, replace_all)

    # ID3

    @staticmethod
    def _id3_frame_key(frame: Any) -> Optional[str]:
        """Property key a frame is read into, None for frames outside the property map."""
        frame_id = frame.FrameID
        if frame_id in ID3_FRAMES:
            return ID3_FRAMES[frame_id]
        if frame_id == 'COMM':
            return 'COMMENT' if not frame.desc else f"COMMENT:{frame.desc.upper()}"
        if frame_id == 'USLT':
            return 'LYRICS'
        if frame_id == 'TXXX':
            return freeform_to_key(frame.desc)
        return None

    def _read_id3_properties(self, tags: id3.ID3):
        for frame in tags.values():
            key = self._id3_frame_key(frame)
            if key is None:
                continue
            if frame.FrameID == 'TCON':
                yield key, [str(g) for g in frame.genres]
            elif frame.FrameID == 'USLT':
                yield key, [str(frame.text)]
            else:
                yield key, [str(t) for t in frame.text]

    def _write_id3_properties(self, tags: id3.ID3, changes: PropertyMap, replace_all: bool) -> None:
        descs = {}
        for hash_key in list(tags.keys()):
            frame = tags[hash_key]
            key = self._id3_frame_key(frame)
            if key is None or not (replace_all or key in changes):
                continue
            if frame.FrameID in ('COMM', 'TXXX'):
                descs.setdefault(key, frame.desc)
            del tags[hash_key]

        frame_ids = {v: k for k, v in ID3_FRAMES.items()}
        for key, vals in changes.items():
            if not vals:
                continue
            if key in frame_ids:
                tags.add(id3.Frames[frame_ids[key]](encoding=3, text=vals))
            elif key == 'COMMENT' or key.startswith('COMMENT:'):
                desc = descs.get(key, key[len('COMMENT:'):])
                tags.add(id3.COMM(encoding=3, lang='eng', desc=desc, text=vals))
            elif key == 'LYRICS':
                tags.add(id3.USLT(encoding=3, lang='eng', desc='', text='\n'.join(vals)))
            else:
                tags.add(id3.TXXX(encoding=3, desc=descs.get(key, key_to_freeform(key)), text=vals))

    # MP4

    @staticmethod
    def _mp4_atom_key(atom: str) -> Optional[str]:
        if atom in MP4_ATOMS:
            return MP4_ATOMS[atom]
        if atom in MP4_PAIR_ATOMS:
            return MP4_PAIR_ATOMS[atom]
        if atom == 'tmpo':
            return 'BPM'
        if atom == 'cpil':
            return 'COMPILATION'
        if atom.startswith('----:'):
            # "----:com.apple.iTunes:LYRICIST" -> "LYRICIST"
            return freeform_to_key(atom[len('----:'):].split(':', 1)[-1])
        return None

    def _read_mp4_properties(self, tags: mp4.MP4Tags):
        for atom, vals in tags.items():
            key = self._mp4_atom_key(atom)
            if key is None:
                continue
            if atom in MP4_PAIR_ATOMS:
                try:
                    number, total = vals[0]
                except (TypeError, ValueError, IndexError) as e:
                    logger.debug(f"Failed to parse MP4 {atom} atom: {e}")
                    continue
                if number:
                    yield key, [f"{number}/{total}" if total else str(number)]
            elif atom == 'tmpo':
                yield key, [str(v) for v in vals]
            elif atom == 'cpil':
                yield key, ['1' if vals else '0']
            else:
                yield key, [_decode(v) for v in vals]

    def _write_mp4_properties(self, tags: mp4.MP4Tags, changes: PropertyMap, replace_all: bool) -> None:
        freeform = {}
        for atom in list(tags.keys()):
            key = self._mp4_atom_key(atom)
            if key is None or not (replace_all or key in changes):
                continue
            if atom.startswith('----:'):
                freeform.setdefault(key, atom)
            del tags[atom]

        atoms = {v: k for k, v in MP4_ATOMS.items()}
        pair_atoms = {v: k for k, v in MP4_PAIR_ATOMS.items()}
        for key, vals in changes.items():
            if not vals:
                continue
            if key in atoms:
                tags[atoms[key]] = vals
            elif key in pair_atoms:
                number, total = parse_pair(vals[0])
                if number or total:
                    tags[pair_atoms[key]] = [(number, total)]
            elif key == 'BPM' and leading_int(vals[0]) is not None:
                tags['tmpo'] = [leading_int(vals[0])]
            elif key == 'COMPILATION':
                tags['cpil'] = bool(leading_int(vals[0]))
            else:
                # Freeform atoms hold UTF-8 bytes
                atom = freeform.get(key, f"----:{Config.DEFAULT_NAMESPACE}:{key_to_freeform(key)}")
                tags[atom] = [mp4.MP4FreeForm(v.encode('utf-8')) for v in vals]

    # Vorbis comments (FLAC, Ogg)

    def _read_vorbis_properties(self, tags: Any):
        for key in tags.keys():
            if key.lower() == 'metadata_block_picture':
                continue
            yield key.upper(), [str(v) for v in tags[key]]

    def _write_vorbis_properties(self, tags: Any, changes: PropertyMap, replace_all: bool) -> None:
        # field names are case insensitive
        for key in list(tags.keys()):
            if key.lower() == 'metadata_block_picture':
                continue
            if replace_all or key.upper() in changes:
                del tags[key]
        for key, vals in changes.items():
            if not vals:
                continue
            try:
                tags[key] = vals
            except ValueError as e:
                logger.warning(f"Failed to write Vorbis comment {key!r}: {e}")

    # ASF

    @staticmethod
    def _asf_attribute_key(name: str, vals: List[Any]) -> Optional[str]:
        if name in ASF_ATTRIBUTES:
            return ASF_ATTRIBUTES[name]
        if all(isinstance(v, asf.ASFUnicodeAttribute) for v in vals):
            return name.upper()
        return None

    def _read_asf_properties(self, tags: asf.ASFTags):
        for name in tags.keys():
            vals = tags[name]
            key = self._asf_attribute_key(name, vals)
            if key is not None:
                yield key, [str(getattr(v, 'value', v)) for v in vals]

    def _write_asf_properties(self, tags: asf.ASFTags, changes: PropertyMap, replace_all: bool) -> None:
        original = {}
        for name in list(tags.keys()):
            key = self._asf_attribute_key(name, tags[name])
            if key is None or not (replace_all or key in changes):
                continue
            original.setdefault(key, name)
            del tags[name]

        names = {v: k for k, v in ASF_ATTRIBUTES.items()}
        for key, vals in changes.items():
            if vals:
                tags[names.get(key) or original.get(key, key)] = [asf.ASFUnicodeAttribute(v) for v in vals]

    # APEv2

    @staticmethod
    def _ape_item_key(name: str, value: Any) -> Optional[str]:
        if value.kind != apev2.TEXT:
            return None
        upper = name.upper()
        return APE_KEYS.get(upper, upper)

    def _read_ape_properties(self, tags: apev2.APEv2):
        for name in tags.keys():
            value = tags[name]
            key = self._ape_item_key(name, value)
            if key is not None:
                yield key, str(value).split('\0')

    def _write_ape_properties(self, tags: apev2.APEv2, changes: PropertyMap, replace_all: bool) -> None:
        original = {}
        for name in list(tags.keys()):
            key = self._ape_item_key(name, tags[name])
            if key is None or not (replace_all or key in changes):
                continue
            original.setdefault(key, name)
            del tags[name]

        names = {v: k.title() for k, v in APE_KEYS.items()}
        for key, vals in changes.items():
            if vals:
                tags[original.get(key) or names.get(key, key.title())] = vals

    # ---------- Complex properties ----------

    def read_complex_property_keys(self) -> List[str]:
        self._raise_invalid()
        if self._read_pictures() and PICTURE not in self._known_complex_keys:
            self._known_complex_keys.append(PICTURE)
        return list(self._known_complex_keys)

    def read_complex_property(self, key: str) -> ComplexPropertyValues:
        self._raise_invalid()
        if key.upper() != PICTURE:
            return []
        return self._read_pictures()

    def merge_complex_properties(self, props: ComplexPropertyMap, replace_all: bool = False) -> None:
        """
        Replace the values of the given complex properties.

        With replace_all every known complex property is cleared first. Keys the
        container cannot store are logged and skipped.
        """
        self._raise_invalid()
        if replace_all:
            for key in self.read_complex_property_keys():
                if key == PICTURE:
                    self._write_pictures([])

        for key, values in props.items():
            if key.upper() != PICTURE or not self._supports_pictures():
                logger.warning(
                    f"Complex property {key!r} not supported for {type(self._mfile).__name__}, skipped"
                )
                continue
            self._write_pictures(values)
            if PICTURE not in self._known_complex_keys:
                self._known_complex_keys.append(PICTURE)

    def _supports_pictures(self) -> bool:
        return isinstance(self._mfile, (flac.FLAC, ogg.OggFileType, mp4.MP4)) or self._kind() in ('id3', None)

    def _read_pictures(self) -> ComplexPropertyValues:
        if isinstance(self._mfile, flac.FLAC):
            return [self._flac_picture_to_map(p) for p in self._mfile.pictures]

        kind = self._kind()
        tags = self._mfile.tags
        if kind == 'id3':
            return [
                {
                    'data': frame.data,
                    'mimeType': frame.mime,
                    'description': frame.desc,
                    'pictureType': picture_type_name(frame.type),
                }
                for frame in tags.getall('APIC')
            ]
        if kind == 'mp4':
            return [
                {
                    'data': bytes(cover),
                    'mimeType': 'image/png' if cover.imageformat == mp4.MP4Cover.FORMAT_PNG else 'image/jpeg',
                    'description': '',
                    'pictureType': PICTURE_TYPES[FRONT_COVER],
                }
                for cover in tags.get('covr', [])
            ]
        if kind == 'vorbis':
            pictures = []
            for encoded in tags.get('metadata_block_picture', []):
                try:
                    pictures.append(self._flac_picture_to_map(flac.Picture(base64.b64decode(encoded))))
                except (ValueError, TypeError, flac.error) as e:
                    logger.warning(f"Failed to parse METADATA_BLOCK_PICTURE in {self.name}: {e}")
            return pictures
        return []

    def _write_pictures(self, pictures: ComplexPropertyValues) -> None:
        if isinstance(self._mfile, flac.FLAC):
            self._mfile.clear_pictures()
            for p in pictures:
                self._mfile.add_picture(self._map_to_flac_picture(p))
            return

        if not pictures and self._mfile.tags is None:
            return
        self._ensure_tags_exist()
        kind = self._kind()
        tags = self._mfile.tags

        if kind == 'id3':
            tags.delall('APIC')
            for p in pictures:
                tags.add(id3.APIC(
                    encoding=3,
                    mime=p.get('mimeType', 'image/jpeg'),
                    type=picture_type_number(p.get('pictureType')),
                    desc=p.get('description', ''),
                    data=_as_bytes(p.get('data')),
                ))
        elif kind == 'mp4':
            covers = []
            for p in pictures:
                fmt = mp4.MP4Cover.FORMAT_PNG if p.get('mimeType') == 'image/png' else mp4.MP4Cover.FORMAT_JPEG
                covers.append(mp4.MP4Cover(_as_bytes(p.get('data')), imageformat=fmt))
            if covers:
                tags['covr'] = covers
            elif 'covr' in tags:
                del tags['covr']
        elif kind == 'vorbis':
            encoded = [
                base64.b64encode(self._map_to_flac_picture(p).write()).decode('ascii')
                for p in pictures
            ]
            if encoded:
                tags['metadata_block_picture'] = encoded
            elif 'metadata_block_picture' in tags:
                del tags['metadata_block_picture']

    @staticmethod
    def _flac_picture_to_map(picture: flac.Picture) -> VariantMap:
        return {
            'data': picture.data,
            'mimeType': picture.mime,
            'description': picture.desc,
            'pictureType': picture_type_name(picture.type),
            'width': picture.width,
            'height': picture.height,
            'colorDepth': picture.depth,
            'numColors': picture.colors,
        }

    @staticmethod
    def _map_to_flac_picture(p: VariantMap) -> flac.Picture:
        picture = flac.Picture()
        picture.type = picture_type_number(p.get('pictureType'))
        picture.mime = p.get('mimeType', 'image/jpeg')
        picture.desc = p.get('description', '')
        picture.data = _as_bytes(p.get('data'))
        picture.width = int(p.get('width', 0) or 0)
        picture.height = int(p.get('height', 0) or 0)
        picture.depth = int(p.get('colorDepth', 0) or 0)
        picture.colors = int(p.get('numColors', 0) or 0)
        return picture

    # ---------- Storage ----------

    def commit_to_storage(self) -> None:
        """Persist all merged changes."""
        self._raise_invalid()
        try:
            if self._fileobj is not None:
                self._fileobj.seek(0)
                self._mfile.save(self._fileobj)
            else:
                self._mfile.save()
        except (mutagen.MutagenError, OSError) as e:
            raise SaveError(f"Failed to save {self.name}: {e}") from e
