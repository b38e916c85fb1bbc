"""Artifact extraction from an untrusted completion.

The completion service enforces no schema, so each content type has an
ordered list of strategies (pure ``str -> str | None`` functions) and the
first one that yields non-empty text wins.  The last resort is a fixed
placeholder, so ``extract`` never raises: a malformed completion degrades the
artifact, it does not fail the run.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from appforge.models.provisioning import GeneratedArtifact

logger = logging.getLogger(__name__)

Strategy = Callable[[str], "str | None"]

MARKUP_PLACEHOLDER = "<!DOCTYPE html><html><body>HTML not found</body></html>"
STYLE_PLACEHOLDER = "/* CSS not found */"
SCRIPT_PLACEHOLDER = "console.warn('JS not found');"


def _fenced(*labels: str) -> Strategy:
    """Match the first fenced block labelled with one of *labels*."""
    label_group = "|".join(re.escape(label) for label in labels)
    pattern = re.compile(
        rf"```[ \t]*(?:{label_group})(?![\w-])\s*(.*?)```",
        re.IGNORECASE | re.DOTALL,
    )

    def strategy(text: str) -> str | None:
        match = pattern.search(text)
        if match is None:
            return None
        return match.group(1).strip() or None

    strategy.__name__ = f"fenced_{labels[0]}"
    return strategy


def _tag_inner(pattern: re.Pattern[str], name: str) -> Strategy:
    """First non-empty inner region of a tag, wrapping tags stripped."""

    def strategy(text: str) -> str | None:
        for match in pattern.finditer(text):
            inner = match.group(1).strip()
            if inner:
                return inner
        return None

    strategy.__name__ = name
    return strategy


_HTML_DOCUMENT = re.compile(
    r"(?:<!doctype\s+html[^>]*>\s*)?<html\b.*?</html\s*>",
    re.IGNORECASE | re.DOTALL,
)
_STYLE_REGION = re.compile(
    r"<style\b[^>]*>(.*?)</style\s*>", re.IGNORECASE | re.DOTALL
)
# External scripts (<script src=...>) have no inline body worth extracting.
_SCRIPT_REGION = re.compile(
    r"<script\b(?![^>]*\bsrc\s*=)[^>]*>(.*?)</script\s*>",
    re.IGNORECASE | re.DOTALL,
)


def html_document(text: str) -> str | None:
    """The root document region, kept whole (doctype included when present)."""
    match = _HTML_DOCUMENT.search(text)
    if match is None:
        return None
    return match.group(0).strip() or None


fenced_markup = _fenced("html")
fenced_style = _fenced("css")
fenced_script = _fenced("js", "javascript")
style_region = _tag_inner(_STYLE_REGION, "style_region")
script_region = _tag_inner(_SCRIPT_REGION, "script_region")


# Ordered fallback chains, one per artifact field.
EXTRACTION_STRATEGIES: dict[str, list[Strategy]] = {
    "markup": [fenced_markup, html_document],
    "style": [fenced_style, style_region],
    "script": [fenced_script, script_region],
}

PLACEHOLDERS: dict[str, str] = {
    "markup": MARKUP_PLACEHOLDER,
    "style": STYLE_PLACEHOLDER,
    "script": SCRIPT_PLACEHOLDER,
}


def first_success(strategies: list[Strategy], text: str) -> str | None:
    """Apply *strategies* in order and return the first non-empty result."""
    for strategy in strategies:
        result = strategy(text)
        if result:
            return result
    return None


def extract(completion_text: str) -> GeneratedArtifact:
    """Split a completion into markup, style and script.

    Deterministic and total: identical input yields identical output, and
    content that cannot be found is replaced by its placeholder.
    """
    fields: dict[str, str] = {}
    for field_name, strategies in EXTRACTION_STRATEGIES.items():
        found = first_success(strategies, completion_text or "")
        if found is None:
            logger.warning(
                "No %s found in completion; using placeholder.", field_name
            )
            found = PLACEHOLDERS[field_name]
        fields[field_name] = found
    return GeneratedArtifact(**fields)
