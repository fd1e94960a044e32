"""Thin wrappers over the HydroShare REST operations used by the pipeline."""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from hsportal.errors import TransportError
from hsportal.models import Author, FundingAgency, UploadFile, ValidatedPayload
from hsportal.results import Failure, Success

logger = structlog.get_logger(__name__)

FLAG_MAKE_DISCOVERABLE = "make_discoverable"
FLAG_PRIVATE_LINK = "enable_private_sharing_link"

DEFAULT_API_URL = "https://www.hydroshare.org/hsapi"
DEFAULT_HOST = "www.hydroshare.org"

Outcome = Success[Any] | Failure[TransportError]


class ContentRepository(Protocol):
    """Operations the pipeline needs from the content repository."""

    async def create_resource(self, payload: ValidatedPayload, resource_type: str) -> Outcome:
        ...

    async def set_science_metadata(
        self,
        resource_id: str,
        funding_agencies: tuple[FundingAgency, ...],
        creators: tuple[Author, ...],
    ) -> Outcome:
        ...

    async def upload_file(self, resource_id: str, file: UploadFile) -> Outcome:
        ...

    async def set_access(self, resource_id: str, public: bool) -> Outcome:
        ...

    async def set_flag(self, resource_id: str, flag: str) -> Outcome:
        ...

    async def set_custom_metadata(self, resource_id: str, data: dict[str, str]) -> bool:
        ...

    def resource_url(self, resource_id: str) -> str:
        ...


class HydroShareClient:
    """Bearer-token client for the HydroShare resource API. Never retries."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        *,
        base_url: str = DEFAULT_API_URL,
        host: str = DEFAULT_HOST,
    ) -> None:
        self._client = client
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._host = host

    @property
    def _auth(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def resource_url(self, resource_id: str) -> str:
        return f"https://{self._host}/resource/{resource_id}"

    async def create_resource(self, payload: ValidatedPayload, resource_type: str) -> Outcome:
        fields: list[tuple[str, str]] = [
            ("resource_type", resource_type),
            ("title", payload.title),
            ("abstract", payload.abstract),
        ]
        fields.extend(
            (f"keywords[{index}]", keyword) for index, keyword in enumerate(sorted(payload.keywords))
        )
        fields.append(("metadata", payload.coverage_json))
        fields.append(("extra_metadata", payload.extra_metadata_json()))

        # filename None sends each entry as a plain multipart form field
        multipart = [(name, (None, value)) for name, value in fields]
        response = await self._send("create", "POST", "/resource/", files=multipart)
        if isinstance(response, Failure):
            return response
        if not response.is_success:
            return self._failure("create", response, response.text or f"Server error {response.status_code}")
        try:
            resource_id = response.json().get("resource_id")
        except (ValueError, AttributeError):
            resource_id = None
        if not resource_id:
            return self._failure("create", response, "No resource ID returned")
        logger.info("repository.created", resource_id=resource_id)
        return Success(str(resource_id))

    async def set_science_metadata(
        self,
        resource_id: str,
        funding_agencies: tuple[FundingAgency, ...],
        creators: tuple[Author, ...],
    ) -> Outcome:
        body = {
            "funding_agencies": [agency.model_dump() for agency in funding_agencies],
            "creators": [author.model_dump() for author in creators],
        }
        response = await self._send(
            "scimeta", "PUT", f"/resource/{resource_id}/scimeta/elements/", json=body
        )
        if isinstance(response, Failure):
            return response
        if response.status_code != 202:
            return self._failure(
                "scimeta",
                response,
                f"Updating science metadata failed (HTTP {response.status_code})",
            )
        return Success(None)

    async def upload_file(self, resource_id: str, file: UploadFile) -> Outcome:
        response = await self._send(
            "upload",
            "POST",
            f"/resource/{resource_id}/files/",
            files={"file": (file.name, file.content, file.content_type)},
        )
        if isinstance(response, Failure):
            return response
        if not response.is_success:
            return self._failure(
                "upload",
                response,
                f"Uploading file {file.name} failed (HTTP {response.status_code})",
            )
        return Success(file.name)

    async def set_access(self, resource_id: str, public: bool) -> Outcome:
        response = await self._send(
            "access", "PUT", f"/resource/accessRules/{resource_id}/", json={"public": public}
        )
        if isinstance(response, Failure):
            return response
        if response.status_code != 200:
            return self._failure(
                "access", response, f"Setting access rules failed (HTTP {response.status_code})"
            )
        return Success(public)

    async def set_flag(self, resource_id: str, flag: str) -> Outcome:
        response = await self._send(
            "flag", "POST", f"/resource/{resource_id}/flag/", json={"flag": flag}
        )
        if isinstance(response, Failure):
            return response
        if response.status_code != 202:
            return self._failure(
                "flag", response, f"Setting {flag} flag failed (HTTP {response.status_code})"
            )
        return Success(flag)

    async def set_custom_metadata(self, resource_id: str, data: dict[str, str]) -> bool:
        """Best-effort; the outcome is logged and reported but never raised."""
        response = await self._send(
            "custom", "POST", f"/resource/{resource_id}/scimeta/custom/", json=data
        )
        if isinstance(response, Failure) or not response.is_success:
            logger.info("repository.custom_metadata_ignored", resource_id=resource_id)
            return False
        return True

    async def _send(
        self, operation: str, method: str, path: str, **kwargs: Any
    ) -> httpx.Response | Failure[TransportError]:
        url = f"{self._base_url}{path}"
        logger.debug("repository.request", operation=operation, method=method, url=url)
        try:
            return await self._client.request(method, url, headers=self._auth, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("repository.request_failed", operation=operation, error=str(exc))
            return Failure(TransportError(f"{operation} request failed: {exc}", operation=operation))

    def _failure(
        self, operation: str, response: httpx.Response, message: str
    ) -> Failure[TransportError]:
        logger.warning(
            "repository.unexpected_status",
            operation=operation,
            status=response.status_code,
            error=message,
        )
        return Failure(TransportError(message, status=response.status_code, operation=operation))

