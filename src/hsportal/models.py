"""Core data models used throughout the submission pipeline."""

from __future__ import annotations

import json
import mimetypes
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hsportal.utils import sanitize_file_name


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    DISCOVERABLE = "discoverable"


class Author(BaseModel):
    """A single creator record as HydroShare expects it."""

    model_config = ConfigDict(frozen=True)

    name: str


class FundingAgency(BaseModel):
    """Funding-agency record; only kept when every field is filled in."""

    agency_name: str = ""
    award_title: str = ""
    award_number: str = ""
    agency_url: str = ""

    def is_complete(self) -> bool:
        return all(
            value.strip()
            for value in (self.agency_name, self.award_title, self.award_number, self.agency_url)
        )


class Coverage(BaseModel):
    """Spatial or temporal coverage, passed through to the repository untouched."""

    model_config = ConfigDict(extra="allow")

    type: str
    value: dict[str, Any] = Field(default_factory=dict)


class UploadFile(BaseModel):
    """In-memory file destined for the repository or the object store."""

    name: str
    content: bytes = b""
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        _, _, ext = self.name.rpartition(".")
        return ext if "." in self.name else ""

    @classmethod
    def from_path(cls, path: Path, *, sanitize: bool = True) -> "UploadFile":
        name = sanitize_file_name(path.name) if sanitize else path.name
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(name=name, content=path.read_bytes(), content_type=content_type)


class SubmissionDraft(BaseModel):
    """User-editable resource description, not yet submitted."""

    title: str = ""
    authors: str = ""  # comma-delimited names
    abstract: str = ""
    keywords: str = ""
    page_url: str = ""
    docs_url: str = ""
    funding_agencies: list[FundingAgency] = Field(default_factory=list)
    coverages: list[Coverage] = Field(default_factory=list)
    files: list[UploadFile] = Field(default_factory=list, exclude=True)
    thumbnail: UploadFile | None = Field(default=None, exclude=True)
    pres_path: str = ""
    visibility: str = Visibility.PUBLIC.value

    def attach_files(self, files: list[UploadFile], *, presentation: bool = False) -> None:
        """Replace the file list; presentations default their path to a leading PDF."""
        self.files = list(files)
        if presentation and files and files[0].name.lower().endswith(".pdf"):
            self.pres_path = files[0].name


class ValidatedPayload(BaseModel):
    """Normalized, rule-checked draft. Only produced by ``validate``."""

    model_config = ConfigDict(frozen=True)

    title: str
    abstract: str
    authors: tuple[Author, ...]
    keywords: frozenset[str]
    funding_agencies: tuple[FundingAgency, ...]
    pres_path: str | None = None
    coverage_json: str = "[]"
    extra_metadata: dict[str, str] = Field(default_factory=dict)
    page_url: str | None = None
    visibility: str = Visibility.PUBLIC.value
    files: tuple[UploadFile, ...] = ()
    thumbnail: UploadFile | None = None

    def extra_metadata_json(self) -> str:
        return json.dumps(self.extra_metadata) if self.extra_metadata else "{}"

    def with_thumbnail_url(self, url: str) -> "ValidatedPayload":
        extra = {**self.extra_metadata, "thumbnail_url": url}
        return self.model_copy(update={"extra_metadata": extra})


class RemoteResource(BaseModel):
    """Resource identity assigned by HydroShare on creation."""

    resource_id: str
    url: str
