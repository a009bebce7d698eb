"""
Tests for pass_builder.core.probe — llvm-config discovery.
"""
import logging

import pytest

from conftest import FakeRun, write_script
from pass_builder.core.platform import OsFamily, Platform, Vendor
from pass_builder.core.probe import (
    BrewCellarStrategy,
    Fallback,
    Found,
    ProbeSource,
    VersionScanStrategy,
    probe,
    scan_versions,
    select_strategy,
    tool_of,
)

CELLAR = "/opt/homebrew/Cellar"


# ═══════════════════════════════════════════════════════════════════════════════
# scan_versions
# ═══════════════════════════════════════════════════════════════════════════════

class TestScanVersions:
    def test_picks_highest_present(self):
        assert scan_versions(3, 10, lambda v: v in {5, 7}) == 7

    def test_picks_highest_in_default_window(self):
        assert scan_versions(6, 33, lambda v: v in {5, 7}) == 7

    def test_scans_descending(self):
        seen = []

        def exists(v):
            seen.append(v)
            return False

        assert scan_versions(6, 9, exists) is None
        assert seen == [9, 8, 7, 6]

    def test_stops_at_first_hit(self):
        seen = []

        def exists(v):
            seen.append(v)
            return v <= 15

        assert scan_versions(6, 18, exists) == 15
        assert seen == [18, 17, 16, 15]

    def test_bounds_inclusive(self):
        assert scan_versions(6, 33, lambda v: v == 33) == 33
        assert scan_versions(6, 33, lambda v: v == 6) == 6
        assert scan_versions(6, 33, lambda v: v in {5, 34}) is None

    def test_empty_range(self):
        assert scan_versions(10, 9, lambda v: True) is None


# ═══════════════════════════════════════════════════════════════════════════════
# Strategies
# ═══════════════════════════════════════════════════════════════════════════════

class TestVersionScanStrategy:
    def test_found(self, profile):
        present = {"llvm-config-5", "llvm-config-7"}
        result = VersionScanStrategy(profile, exists=present.__contains__).probe()
        assert result == Found("llvm-config-7", ProbeSource.VERSION_SCAN)

    def test_fallback_is_bare_name_without_reason(self, profile):
        result = VersionScanStrategy(profile, exists=lambda name: False).probe()
        assert result == Fallback("llvm-config")
        assert result.reason is None

    def test_stub_executables_on_path(self, profile, tmp_path, monkeypatch, posix_only):
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        for v in (5, 7):
            write_script(bin_dir / f"llvm-config-{v}", "exit 0\n")
        monkeypatch.setenv("PATH", str(bin_dir))

        result = VersionScanStrategy(profile).probe()
        assert result == Found("llvm-config-7", ProbeSource.VERSION_SCAN)


class TestBrewCellarStrategy:
    def _strategy(self, profile, run, matches):
        patterns = []

        def glob_fn(pattern):
            patterns.append(pattern)
            return list(matches)

        return BrewCellarStrategy(profile, run=run, glob_fn=glob_fn), patterns

    def test_picks_last_sorted_match(self, profile):
        run = FakeRun(responses={("brew", "--cellar"): CELLAR + "\n"})
        matches = [
            f"{CELLAR}/llvm/17.0.6/bin/llvm-config",
            f"{CELLAR}/llvm/18.1.8/bin/llvm-config",
            f"{CELLAR}/llvm/16.0.0/bin/llvm-config",
        ]
        strategy, patterns = self._strategy(profile, run, matches)

        result = strategy.probe()
        assert result == Found(f"{CELLAR}/llvm/18.1.8/bin/llvm-config", ProbeSource.BREW)
        assert patterns == [f"{CELLAR}/llvm/*/bin/llvm-config"]

    def test_empty_cellar_falls_back(self, profile):
        run = FakeRun(responses={("brew", "--cellar"): "  \n"})
        strategy, patterns = self._strategy(profile, run, [])

        result = strategy.probe()
        assert isinstance(result, Fallback)
        assert result.name == "llvm-config"
        assert "Empty return" in result.reason
        assert patterns == []

    def test_missing_brew_falls_back(self, profile):
        run = FakeRun(missing={"brew"})
        strategy, _ = self._strategy(profile, run, [])

        result = strategy.probe()
        assert isinstance(result, Fallback)
        assert "Could not execute brew --cellar" in result.reason

    def test_no_match_falls_back(self, profile):
        run = FakeRun(responses={("brew", "--cellar"): CELLAR})
        strategy, _ = self._strategy(profile, run, [])

        result = strategy.probe()
        assert isinstance(result, Fallback)
        assert "No llvm-config found in brew cellar" in result.reason

    def test_undecodable_output_falls_back(self, profile):
        def run(cmd, **kwargs):
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

        strategy, _ = self._strategy(profile, run, [])
        result = strategy.probe()
        assert isinstance(result, Fallback)
        assert "Empty return" in result.reason


class TestSelectStrategy:
    def test_apple_uses_brew(self, profile):
        s = select_strategy(Platform(OsFamily.MACOS, Vendor.APPLE), profile)
        assert isinstance(s, BrewCellarStrategy)

    def test_others_scan_versions(self, profile):
        for p in (
            Platform(OsFamily.LINUX, Vendor.UNKNOWN),
            Platform(OsFamily.WINDOWS, Vendor.PC),
        ):
            assert isinstance(select_strategy(p, profile), VersionScanStrategy)


# ═══════════════════════════════════════════════════════════════════════════════
# probe()
# ═══════════════════════════════════════════════════════════════════════════════

class _Exploding:
    def probe(self):
        raise AssertionError("strategy must not run when overridden")


class TestProbe:
    def test_override_wins_without_validation(self, profile):
        env = {"LLVM_CONFIG": "/does/not/exist/llvm-config"}
        result = probe(_Exploding(), env, profile)
        assert result == Found("/does/not/exist/llvm-config", ProbeSource.OVERRIDE)

    def test_strategy_result_passed_through(self, profile):
        strategy = VersionScanStrategy(profile, exists=lambda n: n == "llvm-config-14")
        assert tool_of(probe(strategy, {}, profile)) == "llvm-config-14"

    def test_brew_fallback_warns_once(self, profile, caplog):
        strategy = BrewCellarStrategy(profile, run=FakeRun(missing={"brew"}))
        warnings = []
        with caplog.at_level(logging.WARNING):
            result = probe(strategy, {}, profile, warnings)

        assert tool_of(result) == "llvm-config"
        assert len(warnings) == 1
        assert [r.levelno for r in caplog.records] == [logging.WARNING]

    def test_scan_fallback_is_silent(self, profile, caplog):
        strategy = VersionScanStrategy(profile, exists=lambda n: False)
        warnings = []
        with caplog.at_level(logging.WARNING):
            result = probe(strategy, {}, profile, warnings)

        assert result == Fallback("llvm-config")
        assert warnings == []
        assert caplog.records == []


class TestToolOf:
    def test_found(self):
        assert tool_of(Found("/x/llvm-config", ProbeSource.BREW)) == "/x/llvm-config"

    def test_fallback(self):
        assert tool_of(Fallback("llvm-config", "why")) == "llvm-config"
