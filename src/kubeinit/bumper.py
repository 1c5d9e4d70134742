"""Semantic version bumping for release tags."""

from kubeinit.errors import VersionFormatError

INCREMENTS = ("major", "minor", "patch")


def bump_version(current: str, increment: str = "patch") -> str:
    """
    Bump a vMAJOR.MINOR.PATCH tag.

    "major" resets minor and patch, "minor" resets patch; any other value,
    including an empty string, bumps the patch number. A leading "v" on the
    input is optional; the result always carries one.
    """
    version = current[1:] if current.startswith("v") else current
    parts = version.split(".")
    if len(parts) != 3:
        raise VersionFormatError(
            f"version string {current!r} does not match expected format (e.g., v1.0.13)"
        )

    numbers = []
    for label, part in zip(INCREMENTS, parts):
        try:
            numbers.append(int(part))
        except ValueError as e:
            raise VersionFormatError(f"invalid {label} version: {part!r}") from e
    major, minor, patch = numbers

    if increment == "major":
        major, minor, patch = major + 1, 0, 0
    elif increment == "minor":
        minor, patch = minor + 1, 0
    else:
        patch += 1

    return f"v{major}.{minor}.{patch}"
