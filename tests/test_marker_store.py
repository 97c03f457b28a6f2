from catalog_cache.domain.models import Marker


def test_absent_marker_reads_none_and_is_stale(markers):
    assert markers.read(Marker.SYSVER) is None
    assert markers.is_stale(Marker.SYSVER, "23.05")


def test_write_creates_cache_dir(markers, config):
    assert not config.cache_dir.exists()
    markers.write(Marker.CHNVER, "23.05.1234.abcdef")
    assert (config.cache_dir / "chnver.txt").read_text() == "23.05.1234.abcdef"
    assert markers.read("chnver") == "23.05.1234.abcdef"


def test_comparison_trims_whitespace(markers, config):
    config.cache_dir.mkdir(parents=True)
    (config.cache_dir / "newver.txt").write_text("  abcdef0123\n\n")
    assert markers.read(Marker.NEWVER) == "abcdef0123"
    assert not markers.is_stale(Marker.NEWVER, "abcdef0123\n")
    assert markers.is_stale(Marker.NEWVER, "abcdef0124")


def test_write_overwrites_without_leftovers(markers, config):
    markers.write(Marker.FLAKEVER, "old")
    markers.write(Marker.FLAKEVER, "new")
    assert markers.read(Marker.FLAKEVER) == "new"
    assert sorted(p.name for p in config.cache_dir.iterdir()) == ["flakever.txt"]


def test_remove(markers):
    assert markers.remove(Marker.CHNVER) is False
    markers.write(Marker.CHNVER, "23.05")
    assert markers.remove(Marker.CHNVER) is True
    assert markers.read(Marker.CHNVER) is None


def test_snapshot_lists_every_marker(markers):
    markers.write(Marker.PROFILEVER, "sha")
    snapshot = markers.snapshot()
    assert snapshot["profilever"] == "sha"
    assert snapshot["sysver"] is None
    assert set(snapshot) == {"sysver", "chnver", "newver", "flakever", "profilever"}
