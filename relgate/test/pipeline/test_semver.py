from __future__ import annotations

from relgate.pipeline.semver import SemVer, is_semver, parse_semver


def test_parse_plain_version() -> None:
    assert parse_semver("1.2.3") == SemVer(1, 2, 3)
    assert parse_semver("v0.0.1") == SemVer(0, 0, 1)


def test_parse_prerelease_and_build() -> None:
    parsed = parse_semver("1.3.0-beta.4+sha.abc123")
    assert parsed is not None
    assert parsed.prerelease == ("beta", "4")
    assert parsed.build == ("sha", "abc123")
    assert str(parsed) == "1.3.0-beta.4+sha.abc123"


def test_rejects_non_semver() -> None:
    assert parse_semver("1.2") is None
    assert parse_semver("01.2.3") is None
    assert parse_semver("1.2.3.4") is None
    assert not is_semver("latest")


def test_ordering_follows_precedence_rules() -> None:
    ordered = [
        "1.0.0-alpha",
        "1.0.0-alpha.1",
        "1.0.0-alpha.beta",
        "1.0.0-beta",
        "1.0.0-beta.2",
        "1.0.0-beta.11",
        "1.0.0-rc.1",
        "1.0.0",
        "1.2.0",
        "1.3.0",
        "2.0.0",
    ]
    parsed = [parse_semver(v) for v in ordered]
    assert all(p is not None for p in parsed)
    assert sorted(parsed) == parsed  # type: ignore[type-var]


def test_build_metadata_does_not_affect_equality() -> None:
    assert parse_semver("1.0.0+a") == parse_semver("1.0.0+b")
