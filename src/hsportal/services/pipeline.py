"""Submission pipeline that publishes a draft to HydroShare step by step.

The run walks an explicit state machine. Every remote call is awaited before
the next one starts. Once the resource has been created there is no rollback:
a later failure leaves an incomplete resource on HydroShare, which the run
reports through ``PipelineRun.orphaned``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

import structlog

from hsportal.contributions import Contribution
from hsportal.errors import AuthenticationRequiredError, SubmissionError, UploadError
from hsportal.models import RemoteResource, SubmissionDraft, ValidatedPayload, Visibility
from hsportal.results import Failure, Success
from .auth import AuthContext
from .object_store import ProgressCallback, S3Uploader
from .readme import build_readme
from .repository import FLAG_MAKE_DISCOVERABLE, FLAG_PRIVATE_LINK, ContentRepository
from .session import SessionContinuity
from .validation import validate

logger = structlog.get_logger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    UPLOADING_THUMBNAIL = "uploading_thumbnail"
    CREATING_RESOURCE = "creating_resource"
    SETTING_METADATA = "setting_metadata"
    UPLOADING_FILES = "uploading_files"
    SETTING_VISIBILITY = "setting_visibility"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STATES = frozenset({PipelineState.SUCCEEDED, PipelineState.FAILED})

_FORWARD = {
    PipelineState.IDLE: PipelineState.VALIDATING,
    PipelineState.UPLOADING_THUMBNAIL: PipelineState.CREATING_RESOURCE,
    PipelineState.CREATING_RESOURCE: PipelineState.SETTING_METADATA,
    PipelineState.SETTING_METADATA: PipelineState.UPLOADING_FILES,
    PipelineState.UPLOADING_FILES: PipelineState.SETTING_VISIBILITY,
    PipelineState.SETTING_VISIBILITY: PipelineState.FINALIZING,
    PipelineState.FINALIZING: PipelineState.SUCCEEDED,
}


def next_state(state: PipelineState, *, ok: bool, has_thumbnail: bool = False) -> PipelineState:
    """The single transition function of the submission state machine."""
    if state in TERMINAL_STATES:
        raise ValueError(f"{state.value} is terminal")
    if not ok:
        return PipelineState.FAILED
    if state is PipelineState.VALIDATING:
        return PipelineState.UPLOADING_THUMBNAIL if has_thumbnail else PipelineState.CREATING_RESOURCE
    return _FORWARD[state]


@dataclass(slots=True)
class StepRecord:
    state: PipelineState
    ok: bool
    message: str


@dataclass(slots=True)
class PipelineRun:
    """Transient record of one submission attempt."""

    state: PipelineState = PipelineState.IDLE
    step_index: int = 0
    records: list[StepRecord] = field(default_factory=list)
    resource: RemoteResource | None = None
    resource_id: str | None = None
    error: SubmissionError | None = None
    in_progress: bool = False

    @property
    def messages(self) -> list[str]:
        return [record.message for record in self.records]

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.SUCCEEDED

    @property
    def orphaned(self) -> bool:
        """True when HydroShare holds a resource this failed run never finished."""
        return self.state is PipelineState.FAILED and self.resource_id is not None

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error else None


@dataclass(slots=True)
class _Context:
    draft: SubmissionDraft
    payload: ValidatedPayload | None = None


StepOutcome = Success[Any] | Failure[SubmissionError]


class SubmissionPipeline:
    """Drives validation, uploads, and HydroShare calls in strict sequence.

    Not reentrant: callers must not start a second run for the same draft
    while ``PipelineRun.in_progress`` is set.
    """

    def __init__(
        self,
        repository: ContentRepository,
        auth: AuthContext,
        session: SessionContinuity,
        contribution: Contribution,
        *,
        uploader: S3Uploader | None = None,
        on_progress: Callable[[str], None] | None = None,
        on_upload_progress: ProgressCallback | None = None,
    ) -> None:
        self._repository = repository
        self._auth = auth
        self._session = session
        self._contribution = contribution
        self._uploader = uploader
        self._on_progress = on_progress
        self._on_upload_progress = on_upload_progress
        self._steps: dict[PipelineState, Callable[[PipelineRun, _Context], Awaitable[StepOutcome]]] = {
            PipelineState.IDLE: self._check_credentials,
            PipelineState.VALIDATING: self._validate,
            PipelineState.UPLOADING_THUMBNAIL: self._upload_thumbnail,
            PipelineState.CREATING_RESOURCE: self._create_resource,
            PipelineState.SETTING_METADATA: self._set_metadata,
            PipelineState.UPLOADING_FILES: self._upload_files,
            PipelineState.SETTING_VISIBILITY: self._set_visibility,
            PipelineState.FINALIZING: self._finalize,
        }

    async def submit(self, draft: SubmissionDraft) -> PipelineRun:
        run = PipelineRun(in_progress=True)
        context = _Context(draft=draft)
        try:
            while run.state not in TERMINAL_STATES:
                outcome = await self._steps[run.state](run, context)
                if isinstance(outcome, Failure):
                    self._fail(run, outcome.error)
                    break
                run.state = next_state(
                    run.state,
                    ok=True,
                    has_thumbnail=context.payload is not None and context.payload.thumbnail is not None,
                )
                run.step_index += 1
                logger.debug("pipeline.transition", state=run.state.value, step=run.step_index)
        finally:
            run.in_progress = False
        if run.succeeded:
            self._session.clear_draft()
        return run

    # Steps ----------------------------------------------------------------

    async def _check_credentials(self, run: PipelineRun, context: _Context) -> StepOutcome:
        if not self._auth.token:
            return Failure(AuthenticationRequiredError())
        self._record(run, "Authenticated with HydroShare")
        return Success(None)

    async def _validate(self, run: PipelineRun, context: _Context) -> StepOutcome:
        result = validate(context.draft, keyword=self._contribution.keyword)
        if isinstance(result, Failure):
            return result
        context.payload = result.value
        self._record(run, "Submission validated")
        return Success(None)

    async def _upload_thumbnail(self, run: PipelineRun, context: _Context) -> StepOutcome:
        payload = context.payload
        assert payload is not None and payload.thumbnail is not None
        if self._uploader is None:
            return Failure(UploadError("S3 upload failed: object storage is not configured", operation="s3"))
        result = await self._uploader.upload(payload.thumbnail, self._on_upload_progress)
        if isinstance(result, Failure):
            return result
        context.payload = payload.with_thumbnail_url(result.value)
        self._record(run, f"Thumbnail uploaded: {result.value}")
        return Success(None)

    async def _create_resource(self, run: PipelineRun, context: _Context) -> StepOutcome:
        assert context.payload is not None
        result = await self._repository.create_resource(
            context.payload, self._contribution.resource_type
        )
        if isinstance(result, Failure):
            return result
        run.resource_id = result.value
        self._record(run, f"Resource created (ID: {result.value})")
        return Success(None)

    async def _set_metadata(self, run: PipelineRun, context: _Context) -> StepOutcome:
        payload = context.payload
        assert payload is not None and run.resource_id is not None
        result = await self._repository.set_science_metadata(
            run.resource_id, payload.funding_agencies, payload.authors
        )
        if isinstance(result, Failure):
            return result
        self._record(run, "Funding agencies and authors updated")
        return Success(None)

    async def _upload_files(self, run: PipelineRun, context: _Context) -> StepOutcome:
        payload = context.payload
        assert payload is not None and run.resource_id is not None
        readme = build_readme(payload.title, payload.abstract, payload.authors, payload.keywords)
        for upload in (*payload.files, readme):
            result = await self._repository.upload_file(run.resource_id, upload)
            if isinstance(result, Failure):
                return result
            self._record(run, f"Uploaded file: {upload.name}")
        return Success(None)

    async def _set_visibility(self, run: PipelineRun, context: _Context) -> StepOutcome:
        payload = context.payload
        assert payload is not None and run.resource_id is not None
        visibility = payload.visibility
        if visibility in (Visibility.PUBLIC.value, Visibility.PRIVATE.value):
            result = await self._repository.set_access(
                run.resource_id, visibility == Visibility.PUBLIC.value
            )
            if isinstance(result, Failure):
                return result
            self._record(run, f"Resource made {visibility}")
        elif visibility == Visibility.DISCOVERABLE.value:
            for flag in (FLAG_MAKE_DISCOVERABLE, FLAG_PRIVATE_LINK):
                result = await self._repository.set_flag(run.resource_id, flag)
                if isinstance(result, Failure):
                    return result
            self._record(run, "Resource made discoverable with private link sharing enabled")
        else:
            logger.warning("pipeline.unknown_visibility", visibility=visibility)
            self._record(run, f"Invalid visibility setting {visibility!r}, skipping")
        return Success(None)

    async def _finalize(self, run: PipelineRun, context: _Context) -> StepOutcome:
        payload = context.payload
        assert payload is not None and run.resource_id is not None
        url = self._repository.resource_url(run.resource_id)
        run.resource = RemoteResource(resource_id=run.resource_id, url=url)
        if not payload.page_url:
            await self._repository.set_custom_metadata(
                run.resource_id, {**payload.extra_metadata, "url": url}
            )
        self._record(run, f"Resource created successfully: {url}")
        return Success(None)

    # Helpers --------------------------------------------------------------

    def _record(self, run: PipelineRun, message: str, *, ok: bool = True) -> None:
        run.records.append(StepRecord(state=run.state, ok=ok, message=message))
        logger.info("pipeline.progress", state=run.state.value, message=message)
        if self._on_progress:
            self._on_progress(message)

    def _fail(self, run: PipelineRun, error: SubmissionError) -> None:
        self._record(run, str(error), ok=False)
        failed_in = run.state
        run.error = error
        run.state = next_state(run.state, ok=False)
        if run.resource_id is not None:
            logger.warning(
                "pipeline.orphaned_resource",
                resource_id=run.resource_id,
                failed_in=failed_in.value,
            )
        else:
            logger.info("pipeline.failed", failed_in=failed_in.value, error=str(error))
