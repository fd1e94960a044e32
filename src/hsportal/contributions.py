"""Contribution types offered by the portal and how each maps onto HydroShare."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Contribution:
    key: str
    label: str
    resource_type: str
    keyword: str
    accepts_files: bool = True
    accepts_docs_url: bool = False
    single_file: bool = False


CONTRIBUTIONS: dict[str, Contribution] = {
    "app": Contribution(
        key="app",
        label="Product",
        resource_type="ToolResource",
        keyword="nwm_portal_app",
        accepts_files=False,
        accepts_docs_url=True,
    ),
    "dataset": Contribution(
        key="dataset",
        label="Dataset",
        resource_type="CompositeResource",
        keyword="ciroh_portal_data",
        accepts_docs_url=True,
    ),
    "presentation": Contribution(
        key="presentation",
        label="Presentation",
        resource_type="CompositeResource",
        keyword="ciroh_portal_presentation",
        single_file=True,
    ),
    "course": Contribution(
        key="course",
        label="Course",
        resource_type="CompositeResource",
        keyword="ciroh_portal_course",
    ),
}


def get_contribution(key: str) -> Contribution:
    try:
        return CONTRIBUTIONS[key]
    except KeyError as exc:
        choices = ", ".join(sorted(CONTRIBUTIONS))
        raise ValueError(f"Unknown contribution type {key!r}; expected one of: {choices}") from exc
