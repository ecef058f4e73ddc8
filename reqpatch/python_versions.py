"""Python versions available to the resolution sandbox."""

from packaging.version import Version

SUPPORTED_VERSIONS = [
    "3.13.0",
    "3.12.7",
    "3.11.10",
    "3.10.15",
    "3.9.20",
    "3.8.20",
]


def versions_to_iterate(pre_installed: list[str]) -> list[str]:
    """Pre-installed versions first, then the rest newest first."""
    others = sorted(
        (v for v in SUPPORTED_VERSIONS if v not in pre_installed),
        key=Version,
        reverse=True,
    )
    return list(pre_installed) + others
