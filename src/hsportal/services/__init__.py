"""Service layer for the hsportal submission pipeline."""

from .auth import AuthContext, StoredTokenAuth, build_authorization_url, generate_pkce_pair
from .object_store import S3Uploader
from .pipeline import PipelineRun, PipelineState, SubmissionPipeline, next_state
from .readme import build_readme
from .repository import ContentRepository, HydroShareClient
from .session import KeyValueStore, MemoryStore, SessionContinuity, SQLiteStore
from .validation import validate

__all__ = [
    "AuthContext",
    "StoredTokenAuth",
    "build_authorization_url",
    "generate_pkce_pair",
    "S3Uploader",
    "PipelineRun",
    "PipelineState",
    "SubmissionPipeline",
    "next_state",
    "build_readme",
    "ContentRepository",
    "HydroShareClient",
    "KeyValueStore",
    "MemoryStore",
    "SessionContinuity",
    "SQLiteStore",
    "validate",
]
