"""Builds the README.md description document attached to every resource."""

from __future__ import annotations

from collections.abc import Iterable

from hsportal.models import Author, UploadFile

README_NAME = "README.md"


def build_readme(
    title: str | None,
    abstract: str | None,
    authors: Iterable[Author] | None,
    keywords: Iterable[str] | str | None,
) -> UploadFile:
    authors_line = ", ".join(author.name for author in authors or ())
    if isinstance(keywords, str) or keywords is None:
        keywords_line = keywords or ""
    else:
        keywords_line = ", ".join(sorted(keywords))
    content = (
        f"# {(title or '').strip()}\n"
        "\n"
        f"**Authors:** {authors_line}\n"
        "\n"
        f"**Keywords:** {keywords_line}\n"
        "\n"
        "## Abstract\n"
        "\n"
        f"{(abstract or '').strip()}\n"
    )
    return UploadFile(name=README_NAME, content=content.encode("utf-8"), content_type="text/markdown")
