"""
Pytest configuration and shared fixtures.
"""

import wave
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from mutagen.wave import WAVE
from mutagen.id3 import TIT2, TPE1, TALB, TDRC, TCON, TRCK, COMM, TXXX, APIC

from taglite.errors import SaveError
from taglite.models import AudioProperties, AudioTag

# ---------- Constants ----------

# 1x1 transparent PNG
PNG_BYTES = (
    b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00'
    b'\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N'
    b'\x00\x00\x00\x00IEND\xaeB`\x82'
)

FFMPEG = shutil.which("ffmpeg")
FF_ARGS = {
    ".mp3": ["-c:a", "libmp3lame"],
    ".flac": ["-c:a", "flac"],
    ".m4a": ["-c:a", "aac"],
    ".ogg": ["-c:a", "libvorbis"],
}

# ---------- Fake engine ----------

class FakeEngine:
    """
    In-memory TagEngine recording every call made to it.

    calls holds method names in call order; merged holds (name, values, replace_all)
    for the merge operations.
    """

    def __init__(
        self,
        tag: Optional[AudioTag] = None,
        properties: Optional[Dict[str, List[str]]] = None,
        complex_properties: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        audio_properties: Optional[AudioProperties] = None,
        read_only: bool = False,
    ):
        self.tag = tag
        self.properties = {k: list(v) for k, v in (properties or {}).items()}
        self.complex = {k: list(v) for k, v in (complex_properties or {}).items()}
        self.known_complex_keys = list(self.complex)
        self.audio = audio_properties
        self.read_only = read_only
        self.valid = True
        self.fail_commit = False
        self.calls: List[str] = []
        self.merged: List[tuple] = []
        self.release_count = 0

    def reopen(self) -> 'FakeEngine':
        self.valid = True
        self.calls.clear()
        self.merged.clear()
        return self

    def is_valid(self) -> bool:
        return self.valid

    def is_read_only(self) -> bool:
        return self.read_only

    def read_audio_properties(self):
        self.calls.append('read_audio_properties')
        return self.audio

    def read_tag(self):
        self.calls.append('read_tag')
        return self.tag

    def read_property_map(self):
        self.calls.append('read_property_map')
        return {k: list(v) for k, v in self.properties.items()}

    def read_complex_property_keys(self):
        self.calls.append('read_complex_property_keys')
        return list(self.known_complex_keys)

    def read_complex_property(self, key):
        self.calls.append('read_complex_property')
        return list(self.complex.get(key, []))

    def merge_tag_fields(self, fields):
        self.calls.append('merge_tag_fields')
        self.merged.append(('merge_tag_fields', dict(fields), None))
        current = self.tag.to_dict() if self.tag else {}
        current.update(fields)
        self.tag = AudioTag(**current)

    def merge_property_map(self, props, replace_all=False):
        self.calls.append('merge_property_map')
        self.merged.append(('merge_property_map', dict(props), replace_all))
        if replace_all:
            self.properties = {}
        for key, vals in props.items():
            if vals:
                self.properties[key] = list(vals)
            else:
                self.properties.pop(key, None)

    def merge_complex_properties(self, props, replace_all=False):
        self.calls.append('merge_complex_properties')
        self.merged.append(('merge_complex_properties', dict(props), replace_all))
        if replace_all:
            self.complex = {}
        for key, vals in props.items():
            if vals:
                self.complex[key] = list(vals)
                if key not in self.known_complex_keys:
                    self.known_complex_keys.append(key)
            else:
                self.complex.pop(key, None)

    def commit_to_storage(self):
        self.calls.append('commit_to_storage')
        if self.fail_commit:
            raise SaveError("disk full")

    def release(self):
        self.release_count += 1
        self.valid = False


# ---------- Helper Functions ----------

def write_silent_wav(path: Path, seconds: int = 1, sample_rate: int = 44100, channels: int = 2) -> Path:
    """Write a 16 bit PCM WAV file of silence."""
    with wave.open(str(path), 'wb') as w:
        w.setnchannels(channels)
        w.setsampwidth(2)
        w.setframerate(sample_rate)
        w.writeframes(b'\x00\x00' * channels * sample_rate * seconds)
    return path


def write_wav_tags(path: Path) -> None:
    """Add a representative ID3 tag to a WAV file."""
    audio = WAVE(str(path))
    if audio.tags is None:
        audio.add_tags()
    audio.tags.add(TIT2(encoding=3, text=["Sky"]))
    audio.tags.add(TPE1(encoding=3, text=["Band"]))
    audio.tags.add(TALB(encoding=3, text=["Album"]))
    audio.tags.add(TDRC(encoding=3, text=["2021"]))
    audio.tags.add(TCON(encoding=3, text=["Rock"]))
    audio.tags.add(TRCK(encoding=3, text=["3/12"]))
    audio.tags.add(COMM(encoding=3, lang='eng', desc='', text=["Nice"]))
    audio.tags.add(TXXX(encoding=3, desc='MusicBrainz Album Id', text=["abc-123"]))
    audio.tags.add(APIC(encoding=3, mime='image/png', type=3, desc='cover', data=PNG_BYTES))
    audio.save()


def generate_audio(path: Path, ext: str) -> None:
    """Generate a real audio file using ffmpeg."""
    if not FFMPEG:
        raise RuntimeError("ffmpeg not found on PATH")

    cmd = [
        FFMPEG,
        "-f", "lavfi",
        "-i", "sine=frequency=440:duration=1",
        "-ar", "44100",
        "-ac", "2",
        *FF_ARGS[ext],
        str(path),
        "-y",
        "-loglevel", "error",
    ]
    proc = subprocess.run(cmd, capture_output=True)
    if proc.returncode != 0:
        raise RuntimeError(f"ffmpeg failed for {ext}: {proc.stderr.decode()}")

# ---------- Fixtures ----------

@pytest.fixture
def engine():
    """Engine with a tag, properties, a picture and audio properties."""
    return FakeEngine(
        tag=AudioTag(title='Sky', artist='Band', year=2020, track=2),
        properties={
            'TITLE': ['Sky'],
            'ARTIST': ['Band'],
            'ARTISTS': ['A1', 'A2'],
            'DATE': ['2020-05-01'],
            'TRACKNUMBER': ['2/10'],
            'MUSICBRAINZ_ALBUMID': ['abc-123'],
        },
        complex_properties={'PICTURE': [{'data': PNG_BYTES, 'mimeType': 'image/png'}]},
        audio_properties=AudioProperties(audio_length=1000, bitrate=128, sample_rate=44100, channels=2),
    )


@pytest.fixture
def empty_engine():
    return FakeEngine()


@pytest.fixture
def read_only_engine():
    return FakeEngine(tag=AudioTag(title='Sky'), properties={'TITLE': ['Sky']}, read_only=True)


@pytest.fixture
def wav_file(tmp_path):
    """Untagged one second WAV file."""
    return write_silent_wav(tmp_path / "silence.wav")


@pytest.fixture
def tagged_wav(tmp_path):
    """WAV file with an ID3 tag and a front cover."""
    path = write_silent_wav(tmp_path / "tagged.wav")
    write_wav_tags(path)
    return path


@pytest.fixture(params=sorted(FF_ARGS))
def generated_file(request, tmp_path_factory):
    """A real audio file per format, generated with ffmpeg."""
    if not FFMPEG:
        pytest.skip("ffmpeg not found - cannot generate real audio files")
    path = tmp_path_factory.mktemp("generated") / f"test{request.param}"
    try:
        generate_audio(path, request.param)
    except RuntimeError as e:
        pytest.skip(f"Failed to generate {request.param}: {e}")
    return path


@pytest.fixture
def restore_config():
    """Undo Config and logging changes made by the CLI."""
    import logging
    from taglite.utils import Config
    saved = {name: getattr(Config, name) for name in vars(Config) if name.isupper()}
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield Config
    for name, value in saved.items():
        setattr(Config, name, value)
    root.handlers[:] = handlers
    root.setLevel(level)
