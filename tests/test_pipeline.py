import pytest

from hsportal.contributions import get_contribution
from hsportal.errors import AuthenticationRequiredError, TransportError, UploadError, ValidationError
from hsportal.models import FundingAgency, SubmissionDraft, UploadFile
from hsportal.results import Failure, Success
from hsportal.services.pipeline import PipelineState, SubmissionPipeline, next_state
from hsportal.services.session import MemoryStore, SessionContinuity


class _StubAuth:
    def __init__(self, token: str | None = "token") -> None:
        self.token = token
        self.login_in_progress = False

    def log_in(self) -> None:  # noqa: D401 - test helper
        self.login_in_progress = True


class _StubRepository:
    """Records every call; per-operation status overrides simulate failures."""

    def __init__(self, fail: dict[str, int] | None = None, resource_id: str = "abc123") -> None:
        self.calls: list[tuple] = []
        self._fail = fail or {}
        self._resource_id = resource_id

    def _outcome(self, operation: str, value=None):
        status = self._fail.get(operation)
        if status is not None:
            return Failure(TransportError(f"{operation} failed (HTTP {status})", status=status, operation=operation))
        return Success(value)

    async def create_resource(self, payload, resource_type):
        self.calls.append(("create", resource_type, payload.title))
        return self._outcome("create", self._resource_id)

    async def set_science_metadata(self, resource_id, funding_agencies, creators):
        self.calls.append(("scimeta", resource_id, tuple(a.name for a in creators)))
        return self._outcome("scimeta")

    async def upload_file(self, resource_id, file):
        self.calls.append(("upload", file.name))
        return self._outcome(f"upload:{file.name}", file.name)

    async def set_access(self, resource_id, public):
        self.calls.append(("access", public))
        return self._outcome("access", public)

    async def set_flag(self, resource_id, flag):
        self.calls.append(("flag", flag))
        return self._outcome(f"flag:{flag}", flag)

    async def set_custom_metadata(self, resource_id, data):
        self.calls.append(("custom", data))
        return "custom" not in self._fail

    def resource_url(self, resource_id: str) -> str:
        return f"https://www.hydroshare.org/resource/{resource_id}"

    @property
    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]


class _StubUploader:
    def __init__(self, error: UploadError | None = None) -> None:
        self.uploaded: list[str] = []
        self._error = error

    async def upload(self, blob, on_progress=None):
        self.uploaded.append(blob.name)
        if self._error:
            return Failure(self._error)
        return Success("https://bucket.s3.us-east-1.amazonaws.com/uuid.png")


def _draft(**overrides) -> SubmissionDraft:
    values = {
        "title": "Flood Model",
        "authors": "Jane Doe, John Roe",
        "abstract": "A" * 160,
        "funding_agencies": [
            FundingAgency(
                agency_name="NSF", award_title="Hydro", award_number="1", agency_url="https://nsf.gov"
            )
        ],
        "visibility": "public",
    }
    values.update(overrides)
    return SubmissionDraft(**values)


def _pipeline(repository, *, auth=None, uploader=None, session=None, messages=None):
    session = session or SessionContinuity(MemoryStore(), "app")
    return SubmissionPipeline(
        repository,
        auth or _StubAuth(),
        session,
        get_contribution("app"),
        uploader=uploader,
        on_progress=messages.append if messages is not None else None,
    )


def test_transition_function() -> None:
    assert next_state(PipelineState.IDLE, ok=True) is PipelineState.VALIDATING
    assert next_state(PipelineState.VALIDATING, ok=True) is PipelineState.CREATING_RESOURCE
    assert (
        next_state(PipelineState.VALIDATING, ok=True, has_thumbnail=True)
        is PipelineState.UPLOADING_THUMBNAIL
    )
    assert next_state(PipelineState.UPLOADING_THUMBNAIL, ok=True) is PipelineState.CREATING_RESOURCE
    assert next_state(PipelineState.FINALIZING, ok=True) is PipelineState.SUCCEEDED
    for state in PipelineState:
        if state in (PipelineState.SUCCEEDED, PipelineState.FAILED):
            with pytest.raises(ValueError):
                next_state(state, ok=True)
        else:
            assert next_state(state, ok=False) is PipelineState.FAILED


@pytest.mark.asyncio
async def test_public_submission_end_to_end() -> None:
    repository = _StubRepository()
    store = MemoryStore()
    session = SessionContinuity(store, "app")
    session.save_draft(_draft())
    messages: list[str] = []

    run = await _pipeline(repository, session=session, messages=messages).submit(_draft())

    assert run.state is PipelineState.SUCCEEDED
    assert not run.in_progress
    assert run.resource is not None
    assert run.resource.url == "https://www.hydroshare.org/resource/abc123"
    assert repository.operations == ["create", "scimeta", "upload", "access", "custom"]
    assert repository.calls[1] == ("scimeta", "abc123", ("Jane Doe", "John Roe"))
    assert repository.calls[2] == ("upload", "README.md")
    assert repository.calls[3] == ("access", True)
    assert repository.calls[4][1]["url"] == run.resource.url
    assert messages == run.messages
    assert messages[-1].startswith("Resource created successfully")
    assert session.restore_draft() is None


@pytest.mark.asyncio
async def test_metadata_failure_stops_the_run_and_leaves_orphan() -> None:
    repository = _StubRepository(fail={"scimeta": 500})
    session = SessionContinuity(MemoryStore(), "app")
    session.save_draft(_draft())

    run = await _pipeline(repository, session=session).submit(_draft())

    assert run.state is PipelineState.FAILED
    assert "HTTP 500" in run.error_message
    assert repository.operations == ["create", "scimeta"]
    assert run.orphaned
    assert run.resource_id == "abc123"
    assert session.restore_draft() is not None


@pytest.mark.asyncio
async def test_missing_token_fails_before_validation() -> None:
    repository = _StubRepository()
    run = await _pipeline(repository, auth=_StubAuth(token=None)).submit(_draft(title=""))

    assert run.state is PipelineState.FAILED
    assert isinstance(run.error, AuthenticationRequiredError)
    assert repository.calls == []


@pytest.mark.asyncio
async def test_invalid_draft_makes_no_remote_calls() -> None:
    repository = _StubRepository()
    uploader = _StubUploader()
    draft = _draft(abstract="too short", thumbnail=UploadFile(name="icon.png"))

    run = await _pipeline(repository, uploader=uploader).submit(draft)

    assert isinstance(run.error, ValidationError)
    assert repository.calls == []
    assert uploader.uploaded == []
    assert not run.orphaned


@pytest.mark.asyncio
async def test_files_upload_in_order_then_readme() -> None:
    repository = _StubRepository()
    draft = _draft(files=[UploadFile(name="b.csv"), UploadFile(name="a.csv")])

    await _pipeline(repository).submit(draft)

    uploads = [call[1] for call in repository.calls if call[0] == "upload"]
    assert uploads == ["b.csv", "a.csv", "README.md"]


@pytest.mark.asyncio
async def test_upload_failure_aborts_remaining_files() -> None:
    repository = _StubRepository(fail={"upload:a.csv": 413})
    draft = _draft(files=[UploadFile(name="a.csv"), UploadFile(name="b.csv")])

    run = await _pipeline(repository).submit(draft)

    assert run.state is PipelineState.FAILED
    assert repository.operations == ["create", "scimeta", "upload"]
    assert run.error.status == 413


@pytest.mark.asyncio
async def test_discoverable_issues_two_flags_in_order() -> None:
    repository = _StubRepository()
    run = await _pipeline(repository).submit(_draft(visibility="discoverable"))

    assert run.succeeded
    flags = [call[1] for call in repository.calls if call[0] == "flag"]
    assert flags == ["make_discoverable", "enable_private_sharing_link"]
    assert "access" not in repository.operations


@pytest.mark.asyncio
async def test_failed_discoverable_flag_skips_private_link() -> None:
    repository = _StubRepository(fail={"flag:make_discoverable": 403})
    run = await _pipeline(repository).submit(_draft(visibility="discoverable"))

    assert run.state is PipelineState.FAILED
    flags = [call[1] for call in repository.calls if call[0] == "flag"]
    assert flags == ["make_discoverable"]


@pytest.mark.asyncio
async def test_failed_private_link_flag_fails_after_both_flags() -> None:
    repository = _StubRepository(fail={"flag:enable_private_sharing_link": 500})
    run = await _pipeline(repository).submit(_draft(visibility="discoverable"))

    assert run.state is PipelineState.FAILED
    flags = [call[1] for call in repository.calls if call[0] == "flag"]
    assert flags == ["make_discoverable", "enable_private_sharing_link"]
    assert "custom" not in repository.operations
    assert run.resource is None
    assert run.orphaned
    assert run.error.status == 500


@pytest.mark.asyncio
async def test_private_and_unknown_visibility() -> None:
    repository = _StubRepository()
    run = await _pipeline(repository).submit(_draft(visibility="private"))
    assert ("access", False) in repository.calls
    assert run.succeeded

    repository = _StubRepository()
    run = await _pipeline(repository).submit(_draft(visibility="unlisted"))
    assert run.succeeded
    assert "access" not in repository.operations
    assert "flag" not in repository.operations
    assert any("Invalid visibility" in message for message in run.messages)


@pytest.mark.asyncio
async def test_page_url_skips_custom_metadata_and_failure_is_swallowed() -> None:
    repository = _StubRepository()
    await _pipeline(repository).submit(_draft(page_url="https://example.org"))
    assert "custom" not in repository.operations

    repository = _StubRepository(fail={"custom": 500})
    run = await _pipeline(repository).submit(_draft())
    assert run.succeeded
    assert repository.operations[-1] == "custom"


@pytest.mark.asyncio
async def test_thumbnail_url_reaches_create_call() -> None:
    captured = {}

    class _Repository(_StubRepository):
        async def create_resource(self, payload, resource_type):
            captured["extra"] = payload.extra_metadata
            return await super().create_resource(payload, resource_type)

    uploader = _StubUploader()
    repository = _Repository()
    run = await _pipeline(repository, uploader=uploader).submit(
        _draft(thumbnail=UploadFile(name="icon.png", content=b"png"))
    )

    assert run.succeeded
    assert uploader.uploaded == ["icon.png"]
    assert captured["extra"]["thumbnail_url"].endswith("uuid.png")


@pytest.mark.asyncio
async def test_thumbnail_failure_creates_nothing() -> None:
    repository = _StubRepository()
    uploader = _StubUploader(UploadError("S3 upload failed: Access Denied", status=403))

    run = await _pipeline(repository, uploader=uploader).submit(
        _draft(thumbnail=UploadFile(name="icon.png"))
    )

    assert run.state is PipelineState.FAILED
    assert run.error_message == "S3 upload failed: Access Denied"
    assert repository.calls == []
    assert not run.orphaned


@pytest.mark.asyncio
async def test_create_failure_leaves_no_orphan() -> None:
    repository = _StubRepository(fail={"create": 400})
    run = await _pipeline(repository).submit(_draft())

    assert run.state is PipelineState.FAILED
    assert not run.orphaned
    assert repository.operations == ["create"]
