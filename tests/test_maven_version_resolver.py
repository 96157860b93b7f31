"""Tests for Maven version resolution against repository metadata."""

import pytest

from versioning.models import ResolutionMode
from versioning.parser import needs_resolution, parse_version_spec
from versioning.resolvers.maven import MavenMetadata, MavenVersionResolver

METADATA_XML = """<?xml version="1.0" encoding="UTF-8"?>
<metadata>
  <groupId>com.example</groupId>
  <artifactId>lib</artifactId>
  <versioning>
    <latest>3.0-SNAPSHOT</latest>
    <release>2.1</release>
    <versions>
      <version>1.0</version>
      <version>1.5.Final</version>
      <version>2.0</version>
      <version>2.1</version>
      <version>3.0-SNAPSHOT</version>
    </versions>
  </versioning>
</metadata>
"""


@pytest.fixture
def resolver():
    return MavenVersionResolver()


@pytest.fixture
def metadata():
    return MavenMetadata.from_xml(METADATA_XML)


class TestParseVersionSpec:
    """Test declared version classification."""

    @pytest.mark.parametrize("raw, mode", [
        ("1.0", ResolutionMode.EXACT),
        ("[1.0,2.0)", ResolutionMode.RANGE),
        ("(,1.5]", ResolutionMode.RANGE),
        ("latest", ResolutionMode.LATEST),
        ("RELEASE", ResolutionMode.RELEASE),
    ])
    def test_modes(self, raw, mode):
        assert parse_version_spec(raw).mode == mode

    def test_needs_resolution(self):
        assert not needs_resolution("1.0")
        assert needs_resolution("[1.0,)")


class TestMavenVersionResolver:
    """Test version picking."""

    def test_metadata_parsing(self, metadata):
        assert metadata.latest == "3.0-SNAPSHOT"
        assert metadata.release == "2.1"
        assert len(metadata.versions) == 5

    def test_malformed_metadata(self):
        assert MavenMetadata.from_xml("<metadata").versions == []

    @pytest.mark.parametrize("spec, expected", [
        ("[1.0,2.0)", "1.5.Final"),
        ("[1.0,2.0]", "2.0"),
        ("(,1.5]", "1.5.Final"),
        ("(2.0,)", "2.1"),
        ("[1.0]", "1.0"),
        ("[1.0,1.2),[2.0,2.1)", "2.0"),
        ("LATEST", "3.0-SNAPSHOT"),
        ("RELEASE", "2.1"),
        ("2.0", "2.0"),
    ])
    def test_pick(self, resolver, metadata, spec, expected):
        version, count, error = resolver.pick(parse_version_spec(spec), metadata)
        assert (version, error) == (expected, None)
        assert count == 5

    def test_release_without_metadata_field(self, resolver):
        metadata = MavenMetadata(["1.0", "1.10", "1.9", "2.0-SNAPSHOT"])
        version, _, _ = resolver.pick(parse_version_spec("RELEASE"), metadata)
        assert version == "1.10"

    @pytest.mark.parametrize("spec", ["[3.0,4.0)", "5.0", "[1.0,2.0"])
    def test_no_match(self, resolver, metadata, spec):
        version, _, error = resolver.pick(parse_version_spec(spec), metadata)
        assert version is None
        assert error
