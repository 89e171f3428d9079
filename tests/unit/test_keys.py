"""
Tests for key resolution and accessor name mangling.
"""
import pytest

from taglite.errors import InvalidKey
from taglite.keys import (
    AudioField,
    PropertyKey,
    TagField,
    key_name,
    mangle,
    parse_accessor,
    resolve,
)


class TestResolve:
    """Every identifier maps to exactly one kind of key."""

    @pytest.mark.parametrize("name", [f.value for f in TagField])
    def test_tag_fields(self, name):
        key = resolve(name)
        assert isinstance(key, TagField)
        assert key.value == name

    @pytest.mark.parametrize("name", ['audio_length', 'bitrate', 'sample_rate', 'channels'])
    def test_audio_fields(self, name):
        assert isinstance(resolve(name), AudioField)

    @pytest.mark.parametrize("name", ['TITLE', 'COMPOSER', 'PICTURE', 'composer', 'Title', 'MUSICBRAINZ_ALBUMID'])
    def test_other_strings_are_properties(self, name):
        assert resolve(name) == PropertyKey(name)

    def test_keys_pass_through(self):
        assert resolve(TagField.TRACK) is TagField.TRACK
        assert resolve(AudioField.BITRATE) is AudioField.BITRATE
        key = PropertyKey('LYRICS')
        assert resolve(key) is key

    @pytest.mark.parametrize("identifier", [None, 3, 1.5, b'TITLE', ['TITLE']])
    def test_non_strings_are_invalid(self, identifier):
        with pytest.raises(InvalidKey):
            resolve(identifier)

    def test_empty_string_is_invalid(self):
        with pytest.raises(InvalidKey):
            resolve('')

    def test_invalid_key_is_value_error(self):
        with pytest.raises(ValueError):
            resolve(42)

    def test_key_name_inverts_resolve(self):
        for identifier in ['title', 'bitrate', 'COMPOSER']:
            assert key_name(resolve(identifier)) == identifier

    def test_property_key_str(self):
        assert str(PropertyKey('GENRE')) == 'GENRE'


class TestMangle:
    """Accessor names to property names."""

    def test_double_underscore_kept(self):
        assert mangle('musicbrainz__album_id') == 'MUSICBRAINZ_ALBUMID'

    def test_plain_name(self):
        assert mangle('title') == 'TITLE'

    def test_single_underscores_removed(self):
        assert mangle('album_artist') == 'ALBUMARTIST'

    def test_multiple_double_underscores(self):
        assert mangle('custom__tag__id') == 'CUSTOM_TAG_ID'

    def test_deterministic(self):
        assert mangle('replay_gain__track') == mangle('replay_gain__track')


class TestParseAccessor:

    def test_first_value_accessor(self):
        assert parse_accessor('composer') == (PropertyKey('COMPOSER'), False)

    def test_all_prefix(self):
        assert parse_accessor('all_artists') == (PropertyKey('ARTISTS'), True)

    def test_all_prefix_with_mangling(self):
        assert parse_accessor('all_musicbrainz__artist_id') == (PropertyKey('MUSICBRAINZ_ARTISTID'), True)

    @pytest.mark.parametrize("name", ['Composer', 'track2', 'my-tag', 'ünicode', ''])
    def test_unresolvable_names(self, name):
        with pytest.raises(InvalidKey):
            parse_accessor(name)
