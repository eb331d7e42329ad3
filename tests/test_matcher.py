"""Tests for stale artifact detection."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from build_tidy.config import Settings, TidyConfig
from build_tidy.matcher import BuildCycle, ProducedFile, StaleArtifactMatcher, locate_hash

HASH = "ab12e9f03c"

PREVIOUS_BUILD = [
    "app.1234.js",
    "app.1234.js.map",
    "app.5678.js",
    "app.5678.js.map",
    "random.js",
]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted at a temp output directory."""
    return TidyConfig().resolve(tmp_path)


@pytest.fixture
def matcher(settings: Settings) -> StaleArtifactMatcher:
    return StaleArtifactMatcher(settings)


def _touch(directory: Path, *names: str) -> None:
    for name in names:
        path = directory / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(name)


def _cycle(*names: str, hash: str = HASH, written: bool = True) -> BuildCycle:
    return BuildCycle(files=[ProducedFile(name=n, hash=hash, written=written) for n in names], hash=hash)


def _names(candidates: list) -> set[str]:
    return {c.path.name for c in candidates}


class TestLocateHash:
    """Tests for finding the hash segment in a file name."""

    def test_dot_delimited(self) -> None:
        assert locate_hash("app.ab12e.js", "ab12e") == 4

    def test_missing(self) -> None:
        assert locate_hash("app.js", "ab12e") == -1

    def test_prefers_segment_bounded_occurrence(self) -> None:
        """Test a hash that also appears inside another part of the name."""
        assert locate_hash("lib-ab12ef.ab12e.js", "ab12e") == 11

    def test_falls_back_to_first_occurrence(self) -> None:
        assert locate_hash("appab12exx.js", "ab12e") == 3

    def test_case_sensitive(self) -> None:
        assert locate_hash("app.AB12E.js", "ab12e") == -1


class TestDerivePattern:
    """Tests for hash-to-wildcard pattern derivation."""

    def test_replaces_hash_prefix(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        pattern = matcher.derive_pattern(ProducedFile("app.ab12e.js", HASH))
        assert pattern == os.path.join(str(tmp_path), "app.*.js")

    def test_uses_configured_hash_length(self, tmp_path: Path) -> None:
        matcher = StaleArtifactMatcher(TidyConfig(hash_length=8).resolve(tmp_path))
        pattern = matcher.derive_pattern(ProducedFile("js/app.ab12e9f0.js", HASH))
        assert pattern == os.path.join(str(tmp_path), "js", "app.*.js")

    def test_hash_not_in_name(self, matcher: StaleArtifactMatcher) -> None:
        assert matcher.derive_pattern(ProducedFile("manifest.json", HASH)) is None

    def test_empty_hash(self, matcher: StaleArtifactMatcher) -> None:
        assert matcher.derive_pattern(ProducedFile("app.js", "")) is None

    def test_escapes_glob_characters(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        pattern = matcher.derive_pattern(ProducedFile("[id].ab12e.js", HASH))
        assert pattern == os.path.join(str(tmp_path), "[[]id].*.js")

    def test_absolute_file_name(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        other = tmp_path / "elsewhere"
        pattern = matcher.derive_pattern(ProducedFile(str(other / "app.ab12e.js"), HASH))
        assert pattern == os.path.join(str(other), "app.*.js")


class TestFindStale:
    """Tests for stale candidate discovery."""

    def test_previous_build_scenario(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        """Test that exactly the old app files and their maps are reported."""
        _touch(tmp_path, *PREVIOUS_BUILD, "app.ab12e.js", "app.ab12e.js.map")

        candidates = matcher.find_stale(_cycle("app.ab12e.js", "app.ab12e.js.map"))

        assert _names(candidates) == {"app.1234.js", "app.1234.js.map", "app.5678.js", "app.5678.js.map"}
        assert len(candidates) == 4

    def test_sidecar_matched_without_listing_it(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        """Test that maps are found even when only the script is listed as output."""
        _touch(tmp_path, *PREVIOUS_BUILD, "app.ab12e.js", "app.ab12e.js.map")

        candidates = matcher.find_stale(_cycle("app.ab12e.js"))

        assert _names(candidates) == {"app.1234.js", "app.1234.js.map", "app.5678.js", "app.5678.js.map"}
        assert all(c.source == "app.ab12e.js" for c in candidates)

    def test_only_current_outputs(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        _touch(tmp_path, "app.ab12e.js", "app.ab12e.js.map")
        assert matcher.find_stale(_cycle("app.ab12e.js", "app.ab12e.js.map")) == []

    def test_empty_output_directory(self, matcher: StaleArtifactMatcher) -> None:
        assert matcher.find_stale(_cycle("app.ab12e.js")) == []

    def test_unwritten_files_contribute_nothing(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        _touch(tmp_path, *PREVIOUS_BUILD)
        assert matcher.find_stale(_cycle("app.ab12e.js", written=False)) == []

    def test_unwritten_outputs_still_protected(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        """Test that an output not rewritten this cycle is never reported."""
        _touch(tmp_path, "app.ab12e.js", "app.cd34f.js", "app.1234.js")
        cycle = BuildCycle(
            files=[
                ProducedFile("app.ab12e.js", "ab12e", written=True),
                ProducedFile("app.cd34f.js", "cd34f", written=False),
            ]
        )

        assert _names(matcher.find_stale(cycle)) == {"app.1234.js"}

    def test_deduplicates_across_files(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        _touch(tmp_path, "app.1234.js.map")
        candidates = matcher.find_stale(_cycle("app.ab12e.js", "app.ab12e.js.map"))

        assert [c.path.name for c in candidates] == ["app.1234.js.map"]

    def test_other_names_untouched(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        _touch(tmp_path, "vendor.1234.js", "app.1234.css", "application.1234.js")
        assert matcher.find_stale(_cycle("app.ab12e.js")) == []

    def test_does_not_cross_directories(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        _touch(tmp_path, "app.1234.js", "js/app.5678.js", "js/nested/app.9999.js")

        candidates = matcher.find_stale(_cycle("js/app.ab12e.js"))

        assert [c.path for c in candidates] == [tmp_path / "js" / "app.5678.js"]

    def test_case_sensitive(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        _touch(tmp_path, "App.1234.js")
        assert matcher.find_stale(_cycle("app.ab12e.js")) == []

    def test_ignores_directories(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        (tmp_path / "app.1234.js").mkdir()
        assert matcher.find_stale(_cycle("app.ab12e.js")) == []

    def test_hash_repeated_elsewhere_in_name(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        """Test that only the hash segment is wildcarded."""
        _touch(tmp_path, "lib-ab12ef.ab12e.js", "lib-ab12ef.00000.js", "lib-99999f.ab12e.js")

        candidates = matcher.find_stale(_cycle("lib-ab12ef.ab12e.js"))

        assert _names(candidates) == {"lib-ab12ef.00000.js"}

    def test_custom_sidecar_suffixes(self, tmp_path: Path) -> None:
        matcher = StaleArtifactMatcher(TidyConfig(sidecar_suffixes=[".map", ".gz"]).resolve(tmp_path))
        _touch(tmp_path, "app.ab12e.js.gz", "app.1234.js.gz", "app.1234.js.br")

        candidates = matcher.find_stale(_cycle("app.ab12e.js"))

        assert _names(candidates) == {"app.1234.js.gz"}

    def test_idempotent_after_removal(self, matcher: StaleArtifactMatcher, tmp_path: Path) -> None:
        _touch(tmp_path, *PREVIOUS_BUILD, "app.ab12e.js")
        cycle = _cycle("app.ab12e.js")

        for candidate in matcher.find_stale(cycle):
            candidate.path.unlink()

        assert matcher.find_stale(cycle) == []


class TestBuildCycleFromStats:
    """Tests for reading webpack-style stats documents."""

    def test_chunks(self) -> None:
        stats = {
            "hash": "fullbuildhash",
            "outputPath": "/srv/app/public",
            "chunks": [
                {"hash": "ab12e9f0", "files": ["app.ab12e.js"], "auxiliaryFiles": ["app.ab12e.js.map"], "rendered": True},
                {"hash": "cd34f001", "files": ["vendor.cd34f.js"], "rendered": False},
            ],
        }

        cycle = BuildCycle.from_stats(stats)

        assert cycle.hash == "fullbuildhash"
        assert cycle.files == [
            ProducedFile("app.ab12e.js", "ab12e9f0", True),
            ProducedFile("app.ab12e.js.map", "ab12e9f0", True),
            ProducedFile("vendor.cd34f.js", "cd34f001", False),
        ]

    def test_defaults(self) -> None:
        """Test chunks without a hash or rendered flag."""
        cycle = BuildCycle.from_stats({"hash": "ab12e", "chunks": [{"files": ["app.ab12e.js"]}]})
        assert cycle.files == [ProducedFile("app.ab12e.js", "ab12e", True)]

    def test_rejects_malformed_chunks(self) -> None:
        with pytest.raises(ValueError, match="chunk entries must be objects"):
            BuildCycle.from_stats({"chunks": ["app.ab12e.js"]})

    def test_no_chunks(self) -> None:
        assert BuildCycle.from_stats({}).files == []
