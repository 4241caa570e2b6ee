"""
Version normalization for module versions and pinned commits.

Module versions appear as semantic versions (``v1.2.3``, ``v1.2.3-rc1``),
pseudo-versions embedding a commit (``v0.0.0-20200101000000-abcdef123456``)
or bare refs. This module turns them into a single ``(ref, is_sha)`` model.
"""

import re
from typing import Tuple

SHA_LENGTH = 12

INCOMPATIBLE_SUFFIX = "+incompatible"

FULL_SHA_PATTERN = re.compile(r"[0-9a-f]{40}")


def dash_fields(value: str) -> list:
    """Split on ``-`` dropping empty fields, so ``a--b`` yields two fields."""
    return [part for part in value.split("-") if part]


def truncate_sha(sha: str) -> str:
    return sha[:SHA_LENGTH]


def get_commit_or_version(cov: str) -> Tuple[str, bool]:
    """
    Parse the commit or version of a module requirement.

    One or two dash separated fields are a version, possibly with a
    pre-release suffix such as ``-rc1``, and are used as is. Three fields are a
    pseudo-version whose last field is the commit. More than three fields
    cannot be interpreted.

    Args:
        cov: Raw version token

    Returns:
        Tuple of (version or commit, whether it is a commit). An empty first
        element means the token could not be parsed.
    """
    fields = dash_fields(cov)

    if len(fields) > 3 or not fields:
        return "", False

    is_sha = False
    if len(fields) == 3:
        # the version in the first field is often only a placeholder
        cov = fields[2]
        is_sha = True

    # +incompatible is idiomatic for modules but unsightly in release notes
    idx = cov.find(INCOMPATIBLE_SUFFIX)
    if idx > 0:
        cov = cov[:idx]

    if is_sha:
        cov = truncate_sha(cov)

    return cov, is_sha

