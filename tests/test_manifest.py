#!/usr/bin/env python3
"""
Test suite for the manifest store
Tests: parsing, serialization order, round-trip, lazy loading, removal cascade

LOCATION: ./tests/test_manifest.py
"""

import sys

import pytest

from git_dependency.manifest import Manifest, SectionKindError


@pytest.fixture
def manifest_file(tmp_path):
    return tmp_path / ".gitpackage"


def test_load_missing_file_is_empty(manifest_file):
    """A missing manifest is not an error"""
    print("\n🧪 Test: Load Missing Manifest")

    manifest = Manifest(manifest_file)

    assert manifest.sections() == []
    assert manifest.loaded
    assert manifest.keys_of("dependency") == []
    assert manifest.values_of("dependency", "anything") == {}
    print("  ✅ Missing file loads as empty manifest")


def test_parse_strips_whitespace_and_reads_headers(manifest_file):
    """Headers, named records and flat sections are read back"""
    print("\n🧪 Test: Parse Headers and Data Lines")

    manifest_file.write_text(
        'orphan = ignored\n'
        '\n'
        '[dependency "path/to/dep"]\n'
        '  url = https://example.com/owner/pkg.git\n'
        '  path = path/to/dep\n'
        '\n'
        '[core]\n'
        '\tname = my package \n'
    )

    manifest = Manifest(manifest_file)

    assert manifest.sections() == ["core", "dependency"]
    assert manifest.is_named("dependency")
    assert not manifest.is_named("core")
    assert manifest.named_setting("dependency", "path/to/dep", "url") == "https://example.com/owner/pkg.git"
    assert manifest.keys_of("dependency", "path/to/dep") == ["path", "url"]
    # All whitespace is removed, including inside values
    assert manifest.core_setting("core", "name") == "mypackage"
    print("  ✅ Sections, records and variables parsed")


def test_parse_drops_malformed_lines(manifest_file):
    """Malformed headers and lines without '=' contribute nothing"""
    print("\n🧪 Test: Malformed Lines Dropped")

    manifest_file.write_text(
        '[core]\n'
        '  good = yes\n'
        '  no equals sign here\n'
        '[broken "header"\n'
        '  still = core\n'
        '  multi = a=b=c\n'
    )

    manifest = Manifest(manifest_file)

    assert manifest.sections() == ["core"]
    assert manifest.values_of("core") == {"good": "yes", "still": "core", "multi": "a"}
    print("  ✅ Malformed lines ignored, values truncated at the next '='")


def test_store_orders_sections_records_and_variables(manifest_file):
    """Output is sorted regardless of insertion order"""
    print("\n🧪 Test: Deterministic Ordering")

    manifest = Manifest(manifest_file)
    manifest.set_core_setting("zeta", "b", "2")
    manifest.set_core_setting("zeta", "a", "1")
    manifest.set_named_setting("alpha", "second", "y", "1")
    manifest.set_named_setting("alpha", "first", "z", "3")
    manifest.set_named_setting("alpha", "first", "x", "1")
    manifest.store()

    assert manifest_file.read_text() == (
        '[alpha "first"]\n'
        '  x = 1\n'
        '  z = 3\n'
        '\n'
        '[alpha "second"]\n'
        '  y = 1\n'
        '\n'
        '[zeta]\n'
        '  a = 1\n'
        '  b = 2\n'
    )
    print("  ✅ Sections, records and variables written alphabetically")


def test_round_trip_and_idempotent_store(manifest_file):
    """store then load gives the same state, and storing twice the same bytes"""
    print("\n🧪 Test: Round-trip and Idempotent Store")

    manifest = Manifest(manifest_file)
    manifest.set_named_setting("dependency", "lib/b", "url", "../b.git")
    manifest.set_named_setting("dependency", "lib/a", "url", "../a.git")
    manifest.set_named_setting("dependency", "lib/a", "commit", "v1.0")
    manifest.set_core_setting("core", "owner", "me")
    manifest.store()
    first = manifest_file.read_bytes()

    reloaded = Manifest(manifest_file)
    assert reloaded.sections() == manifest.sections()
    for section in manifest.sections():
        assert reloaded.is_named(section) == manifest.is_named(section)
        assert reloaded.values_of(section) == manifest.values_of(section)

    reloaded.store()
    reloaded.store()
    assert manifest_file.read_bytes() == first
    print("  ✅ Round-trip preserved state and bytes")


def test_store_empty_manifest_deletes_file(manifest_file):
    """An empty manifest has no file"""
    print("\n🧪 Test: Empty Manifest Deletion")

    manifest_file.write_text('[dependency "a"]\n  url = x\n')

    manifest = Manifest(manifest_file)
    manifest.remove_named_setting("dependency", "a")
    assert manifest.sections() == []

    manifest.store()
    assert not manifest_file.exists()

    # Storing again with nothing on disk is fine
    manifest.store()
    assert not manifest_file.exists()
    print("  ✅ Manifest file removed")


def test_load_tolerates_undecodable_bytes(manifest_file):
    """Bytes that are not UTF-8 do not stop the manifest from loading"""
    print("\n🧪 Test: Undecodable Manifest Bytes")

    manifest_file.write_bytes(b'[dependency "a"]\n  url = ../caf\xe9.git\n  path = a\n')

    manifest = Manifest(manifest_file)

    assert manifest.keys_of("dependency") == ["a"]
    assert manifest.named_setting("dependency", "a", "url").startswith("../caf")
    assert manifest.named_setting("dependency", "a", "path") == "a"
    print("  ✅ Manifest loaded with replacement characters")


def test_store_write_error_propagates(tmp_path):
    """A manifest that cannot be written raises OSError"""
    print("\n🧪 Test: Store Write Error")

    target = tmp_path / "dir.gitpackage"
    target.mkdir()

    manifest = Manifest(target)
    manifest.set_core_setting("core", "a", "1")

    with pytest.raises(OSError):
        manifest.store()
    assert target.is_dir()
    print("  ✅ Write error raised")


def test_lazy_load_happens_once(manifest_file):
    """Accessors load once; later file changes need an explicit load"""
    print("\n🧪 Test: Lazy Loading")

    manifest_file.write_text('[core]\n  a = 1\n')
    manifest = Manifest(manifest_file)
    assert not manifest.loaded

    assert manifest.core_setting("core", "a") == "1"
    assert manifest.loaded

    manifest_file.write_text('[core]\n  a = 2\n')
    assert manifest.core_setting("core", "a") == "1"

    manifest.load()
    assert manifest.core_setting("core", "a") == "2"
    print("  ✅ Loaded once, reloaded on request")


def test_mutation_before_access_keeps_file_content(manifest_file):
    """The first mutation loads the file before changing it"""
    print("\n🧪 Test: Mutation Triggers Load")

    manifest_file.write_text('[dependency "a"]\n  url = x\n')

    manifest = Manifest(manifest_file)
    manifest.set_named_setting("dependency", "b", "url", "y")

    assert manifest.keys_of("dependency") == ["a", "b"]
    print("  ✅ Existing records kept")


def test_replace_and_merge_records(manifest_file):
    """Replace drops prior keys, merge only updates given keys"""
    print("\n🧪 Test: Replace vs Merge")

    manifest = Manifest(manifest_file)
    manifest.replace_record("dependency", "a", {"url": "x", "branch": "dev"})

    manifest.merge_into_record("dependency", "a", {"commit": "v2"})
    assert manifest.values_of("dependency", "a") == {"url": "x", "branch": "dev", "commit": "v2"}

    manifest.replace_record("dependency", "a", {"url": "z"})
    assert manifest.values_of("dependency", "a") == {"url": "z"}

    manifest.replace_record("dependency", "a", {})
    assert not manifest.has_section("dependency")

    manifest.replace_core_settings("core", {"a": "1", "b": "2"})
    manifest.merge_core_settings("core", {"b": "3"})
    assert manifest.values_of("core") == {"a": "1", "b": "3"}

    manifest.replace_core_settings("core", {"c": "4"})
    assert manifest.values_of("core") == {"c": "4"}
    print("  ✅ Bulk replace and merge behave")


def test_remove_cascades(manifest_file):
    """Removing the last variable removes the record, then the section"""
    print("\n🧪 Test: Removal Cascade")

    manifest = Manifest(manifest_file)
    manifest.set_named_setting("dependency", "a", "url", "x")
    manifest.set_named_setting("dependency", "a", "path", "a")
    manifest.set_named_setting("dependency", "b", "url", "y")
    manifest.set_core_setting("core", "k", "v")

    manifest.remove_named_setting("dependency", "a", "url")
    assert manifest.values_of("dependency", "a") == {"path": "a"}

    manifest.remove_named_setting("dependency", "a", "path")
    assert manifest.keys_of("dependency") == ["b"]

    manifest.remove_named_setting("dependency", "missing")
    manifest.remove_named_setting("nothing", "here", "at all")
    assert manifest.keys_of("dependency") == ["b"]

    manifest.remove_named_setting("dependency", "b")
    assert manifest.sections() == ["core"]

    manifest.remove_core_setting("core", "k")
    assert manifest.sections() == []
    print("  ✅ Empty records and sections removed")


def test_section_kind_is_fixed(manifest_file):
    """A flat section cannot take named records and the other way round"""
    print("\n🧪 Test: Section Kind Conflicts")

    manifest = Manifest(manifest_file)
    manifest.set_core_setting("core", "a", "1")
    manifest.set_named_setting("dependency", "x", "url", "y")

    with pytest.raises(SectionKindError):
        manifest.set_named_setting("core", "name", "a", "1")

    with pytest.raises(SectionKindError):
        manifest.set_core_setting("dependency", "url", "y")

    # Once removed the section can be recreated with the other kind
    manifest.remove_core_setting("core")
    manifest.set_named_setting("core", "name", "a", "1")
    assert manifest.is_named("core")
    print("  ✅ Kind conflicts rejected")


def test_load_rejects_mixed_section_kinds(manifest_file):
    """A file that uses one section both ways fails to load"""
    print("\n🧪 Test: Mixed Section Kinds in File")

    manifest_file.write_text(
        '[dependency "a"]\n'
        '  url = x\n'
        '\n'
        '[dependency]\n'
        '  url = y\n'
    )

    manifest = Manifest(manifest_file)

    with pytest.raises(SectionKindError) as excinfo:
        manifest.load()

    assert excinfo.value.section == "dependency"
    assert excinfo.value.line == 4
    print("  ✅ Mixed kinds reported with line number")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
