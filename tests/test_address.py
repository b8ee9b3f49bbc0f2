# Tests for address.py
# Created: 2026-10-16

import pytest

from pelicanclient.address import ObjectAddress, parse_object_address
from pelicanclient.errors import ParseError


class TestParseObjectAddress:
    def test_object_url(self):
        address = parse_object_address("pelican://osg-htc.org/ospool/data/file.txt")
        assert address == ObjectAddress(
            federation_hostname="osg-htc.org",
            object_path="/ospool/data/file.txt",
            object_prefix="/ospool/data",
        )

    def test_trailing_slash_prefix(self):
        address = parse_object_address("pelican://osg-htc.org/ospool/data/")
        assert address.object_path == "/ospool/data/"
        assert address.object_prefix == "/ospool/data"

    def test_root(self):
        address = parse_object_address("pelican://osg-htc.org/")
        assert address.object_path == "/"
        assert address.object_prefix == ""
        assert address.is_root

    def test_strips_whitespace(self):
        address = parse_object_address("  pelican://fed.example.org/ns/x  ")
        assert str(address) == "pelican://fed.example.org/ns/x"

    @pytest.mark.parametrize(
        "raw",
        [
            "https://osg-htc.org/ospool/data",
            "pelican://",
            "pelican://osg-htc.org",
            "pelican:///ospool",
            "pelican://osg htc.org/x",
            "",
        ],
    )
    def test_rejects_malformed(self, raw):
        with pytest.raises(ParseError):
            parse_object_address(raw)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_object_address("not a url")


class TestObjectAddress:
    @pytest.mark.parametrize(
        "raw",
        [
            "pelican://osg-htc.org/",
            "pelican://osg-htc.org/ospool",
            "pelican://osg-htc.org/ospool/data/",
            "pelican://osg-htc.org/ospool/data/file.txt",
            "pelican://fed.example.org:8443/ns/my%20dir/a.txt",
        ],
    )
    def test_str_parses_back_to_same_address(self, raw):
        address = parse_object_address(raw)
        assert parse_object_address(str(address)) == address
        assert str(address) == raw

    def test_cache_key(self):
        address = parse_object_address("pelican://fed.example.org/ns/dir/a.txt")
        assert address.cache_key == "fed.example.org:/ns/dir/a.txt"

    def test_child(self):
        collection = parse_object_address("pelican://fed.example.org/ns/dir/")
        assert str(collection.child("a.txt")) == "pelican://fed.example.org/ns/dir/a.txt"
        bare = parse_object_address("pelican://fed.example.org/ns/dir")
        assert bare.child("a.txt").object_path == "/ns/dir/a.txt"

    def test_collection(self):
        address = parse_object_address("pelican://fed.example.org/ns/dir/a.txt")
        assert address.collection().object_path == "/ns/dir"
        top = parse_object_address("pelican://fed.example.org/a.txt")
        assert top.collection().object_path == "/"
