"""Messages exchanged through the work queue.

Jobs are serialized as JSON with camelCase keys and a ``kind``
discriminator so that fetch-phase and persist-phase messages can share the
same wire format.
"""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from integrations.github.models import GitHubCommit


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        """Serialize with wire (camelCase) keys."""
        return self.model_dump_json(by_alias=True)


class FetchCommitsJob(_Message):
    """Ask the monitor to fetch new commits for a repository."""

    kind: Literal["fetch"] = "fetch"
    org_name: str = Field(..., description="Organization name")
    repo_name: str = Field(..., description="Repository name")
    since_commit_url: str = Field(default="", description="Cursor at the time the job was queued")


class PersistCommitsJob(_Message):
    """Hand a batch of candidate commits to the indexing worker."""

    kind: Literal["persist"] = "persist"
    org_name: str = Field(..., description="Organization name")
    repo_name: str = Field(..., description="Repository name")
    commits: list[GitHubCommit] = Field(default_factory=list, description="Candidate commits in fetch order")


IndexJob = Annotated[FetchCommitsJob | PersistCommitsJob, Field(discriminator="kind")]

_job_adapter: TypeAdapter[FetchCommitsJob | PersistCommitsJob] = TypeAdapter(IndexJob)


def parse_job(raw: str | bytes) -> FetchCommitsJob | PersistCommitsJob:
    """Parse a job from its JSON wire form.

    Raises:
        pydantic.ValidationError: If the payload is not a valid job.
    """
    return _job_adapter.validate_json(raw)


class WorkerStatus(str, Enum):
    """Terminal status of a persist job."""

    SUCCESS = "success"
    ERROR = "error"


class WorkerResult(_Message):
    """Terminal signal emitted for every persist job the worker consumes."""

    status: WorkerStatus = Field(..., description="success or error")
    org_name: str = Field(..., description="Organization name")
    repo_name: str = Field(..., description="Repository name")
    message: str = Field(default="", description="Result or error message")
    persisted: int = Field(default=0, ge=0, description="Commits newly persisted")
    skipped: int = Field(default=0, ge=0, description="Commits already present or filtered")

    @classmethod
    def from_json(cls, raw: str | bytes) -> "WorkerResult":
        """Parse a result from its JSON wire form."""
        return cls.model_validate_json(raw)
