"""Delivery event schema.

Events are built once per inbound GitHub webhook, after the signature has
been verified and the body parsed. They are the only thing the normalizer
sees — the webhook layer never hands raw payload dicts to the core.

DeliveryEvent is a tagged union on ``kind``. Only pushes and workflow
completions drive a metrics computation; heartbeats and everything else are
acknowledged and dropped.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class PushEvent(_Event):
    """Commits pushed to a repository ref.

    Attributes:
        repository: Full repository name, "owner/name".
        ref: Full git ref that was pushed, e.g. "refs/heads/main".
    """

    kind: Literal["push"] = "push"
    repository: str
    ref: str


class WorkflowCompletionEvent(_Event):
    """A workflow run finished.

    Attributes:
        repository: Full repository name, "owner/name".
        head_branch: Branch the run executed against, used verbatim.
    """

    kind: Literal["workflow_completion"] = "workflow_completion"
    repository: str
    head_branch: str


class HeartbeatEvent(_Event):
    kind: Literal["heartbeat"] = "heartbeat"


class OtherEvent(_Event):
    """Any webhook the engine ignores.

    Attributes:
        name: The webhook type as GitHub reported it (e.g. "check_run").
        repository: Full repository name when the payload carried one.
        branch: Head branch when the payload carried one. Logged only.
    """

    kind: Literal["other"] = "other"
    name: str
    repository: str | None = None
    branch: str | None = None


DeliveryEvent = Annotated[
    Union[PushEvent, WorkflowCompletionEvent, HeartbeatEvent, OtherEvent],
    Field(discriminator="kind"),
]
