"""
Post-processing of model output into a stored document.

Pipeline (same for every generation path):
  1. strip markdown code fences the model sometimes adds
  2. pull out the <!-- EDIT_SUMMARY: … --> comment (edits only)
  3. validate structure: starts with <!DOCTYPE html (any case) and has
     an <html root element

Validation is structural only — whether the markup is *good* is not
something this module can judge.
"""

from __future__ import annotations

import re

from pagesmith.core.errors import InvalidModelOutput

_FENCE = re.compile(r"```[a-zA-Z]*")
_EDIT_SUMMARY = re.compile(r"<!--\s*EDIT_SUMMARY:\s*(.+?)\s*-->", re.DOTALL)
_DOCTYPE = re.compile(r"^<!doctype\s+html", re.IGNORECASE)
_HTML_ROOT = re.compile(r"<html[\s>]", re.IGNORECASE)


def strip_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def extract_edit_summary(document: str) -> tuple[str, str | None]:
    """Return (document without the summary comment, summary or None)."""
    match = _EDIT_SUMMARY.search(document)
    if match is None:
        return document, None
    summary = match.group(1).strip()
    cleaned = (document[: match.start()] + document[match.end():]).strip()
    return cleaned, summary or None


def is_valid_document(document: str) -> bool:
    return bool(_DOCTYPE.match(document)) and bool(_HTML_ROOT.search(document))


def clean_document(raw: str, *, with_summary: bool = False) -> tuple[str, str | None]:
    """
    Turn raw model text into a validated document.

    Returns (document, edit_summary). Raises InvalidModelOutput.
    """
    document = strip_fences(raw or "")
    summary = None
    if with_summary:
        document, summary = extract_edit_summary(document)

    if not is_valid_document(document):
        raise InvalidModelOutput(
            f"model output is not an HTML document (starts with {document[:40]!r})"
        )
    return document, summary
