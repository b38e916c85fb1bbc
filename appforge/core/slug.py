"""Slug generation — the single naming key for repository, image and service.

``slugify`` is pure and total.  It is not injective, so every run appends a
uniqueness suffix through ``make_app_slug`` before the slug names anything
remote.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone

from appforge.models.provisioning import AppSlug

# Cloud Run service names are limited to 49 characters.
MAX_SLUG_LENGTH = 49

_DISALLOWED_RUN = re.compile(r"[^a-z0-9-]+")
_EDGE_HYPHENS = re.compile(r"^-+|-+$")
_HYPHEN_RUN = re.compile(r"-{2,}")


def slugify(name: str) -> str:
    """Lowercase, hyphenate and tidy *name*.

    Steps, in order: lowercase; replace each maximal run of characters outside
    ``[a-z0-9-]`` with one ``-``; strip leading/trailing ``-``; collapse runs
    of ``-``.  The result is empty when *name* has no usable characters.

    >>> slugify("My Cool App!!")
    'my-cool-app'
    >>> slugify("--A--B--")
    'a-b'
    """
    slug = name.lower()
    slug = _DISALLOWED_RUN.sub("-", slug)
    slug = _EDGE_HYPHENS.sub("", slug)
    return _HYPHEN_RUN.sub("-", slug)


def generate_suffix(now: datetime | None = None) -> str:
    """Time-derived uniqueness suffix: ``yymmddHHMMSS`` plus 4 random hex chars."""
    now = now or datetime.now(timezone.utc)
    return f"{now.strftime('%y%m%d%H%M%S')}{uuid.uuid4().hex[:4]}"


def make_app_slug(name: str, suffix: str | None = None) -> AppSlug:
    """Build the run's ``AppSlug`` from an application name.

    The base is truncated so ``base-suffix`` fits ``MAX_SLUG_LENGTH``.  An
    empty base becomes ``app`` and a base starting with a digit is prefixed
    with ``app-``, since service names must start with a letter.
    """
    suffix = slugify(suffix) if suffix is not None else generate_suffix()
    if not suffix:
        suffix = generate_suffix()

    base = slugify(name) or "app"
    if base[0].isdigit():
        base = f"app-{base}"

    budget = MAX_SLUG_LENGTH - len(suffix) - 1
    if budget < 1:
        raise ValueError(f"suffix {suffix!r} leaves no room for a slug base")
    base = base[:budget].rstrip("-") or "a"

    return AppSlug(base=base, suffix=suffix)
