"""Turns a raw draft into a validated, normalized payload without any I/O."""

from __future__ import annotations

import json

import structlog

from hsportal.errors import ValidationError
from hsportal.models import Author, SubmissionDraft, ValidatedPayload
from hsportal.results import Failure, Success
from hsportal.utils import normalize_keywords, split_authors

logger = structlog.get_logger(__name__)

MIN_ABSTRACT_LENGTH = 150

TITLE_REQUIRED = "Title is required."
ABSTRACT_TOO_SHORT = f"Abstract must be at least {MIN_ABSTRACT_LENGTH} characters."
AUTHOR_REQUIRED = "At least one author is required, separated by commas."
FUNDING_REQUIRED = "At least one complete funding agency entry is required."
PRESENTATION_NOT_PDF = "Presentation filename must be a PDF file for embedding."
PRESENTATION_MISSING = "Presentation filename must exist within the uploaded files."


def validate(
    draft: SubmissionDraft, *, keyword: str
) -> Success[ValidatedPayload] | Failure[ValidationError]:
    """Check the draft rule by rule; the first violated rule is reported."""
    title = draft.title.strip()
    if not title:
        return _fail(TITLE_REQUIRED)

    abstract = draft.abstract.strip()
    if len(abstract) < MIN_ABSTRACT_LENGTH:
        return _fail(ABSTRACT_TOO_SHORT)

    authors = tuple(Author(name=name) for name in split_authors(draft.authors))
    if not authors:
        return _fail(AUTHOR_REQUIRED)

    agencies = tuple(agency for agency in draft.funding_agencies if agency.is_complete())
    if not agencies:
        return _fail(FUNDING_REQUIRED)

    pres_path = draft.pres_path.strip() or None
    if pres_path is not None:
        if not pres_path.lower().endswith(".pdf"):
            return _fail(PRESENTATION_NOT_PDF)
        if not any(f.name == pres_path for f in draft.files):
            return _fail(PRESENTATION_MISSING)

    page_url = draft.page_url.strip()
    extra_metadata = build_extra_metadata(
        page_url=page_url, docs_url=draft.docs_url.strip(), pres_path=pres_path or ""
    )
    coverage_json = json.dumps([coverage.model_dump() for coverage in draft.coverages])

    payload = ValidatedPayload(
        title=title,
        abstract=abstract,
        authors=authors,
        keywords=normalize_keywords(draft.keywords, keyword),
        funding_agencies=agencies,
        pres_path=pres_path,
        coverage_json=coverage_json,
        extra_metadata=extra_metadata,
        page_url=page_url or None,
        visibility=draft.visibility,
        files=tuple(draft.files),
        thumbnail=draft.thumbnail,
    )
    return Success(payload)


def build_extra_metadata(
    *, page_url: str = "", thumbnail_url: str = "", docs_url: str = "", pres_path: str = ""
) -> dict[str, str]:
    candidates = {
        "page_url": page_url,
        "thumbnail_url": thumbnail_url,
        "docs_url": docs_url,
        "pres_path": pres_path,
    }
    return {key: value for key, value in candidates.items() if value}


def _fail(message: str) -> Failure[ValidationError]:
    logger.info("validation.rejected", reason=message)
    return Failure(ValidationError(message))
