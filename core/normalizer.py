"""Event normalizer.

Maps a DeliveryEvent to the (repository, branch) pair a metrics computation
runs for, or None when the event should be ignored. Pure functions only —
the normalizer never touches the store or the network.
"""

from schemas.events import DeliveryEvent, PushEvent, WorkflowCompletionEvent

BRANCH_REF_PREFIX = "refs/heads/"


def branch_from_ref(ref: str) -> str:
    """Strip the refs/heads/ prefix from a git ref.

    "refs/heads/release/1.2" becomes "release/1.2". Refs without the prefix
    (tags, bare names) are returned unchanged.
    """
    if ref.startswith(BRANCH_REF_PREFIX):
        return ref[len(BRANCH_REF_PREFIX):]
    return ref


def split_repository(full_name: str) -> tuple[str, str]:
    """Split "owner/name" into its two parts.

    Raises:
        ValueError: If full_name is not exactly one owner and one name.
    """
    owner, sep, name = full_name.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"Expected 'owner/name', got {full_name!r}")
    return owner, name


def normalize_event(event: DeliveryEvent) -> tuple[str, str] | None:
    """Resolve an event to the (repository, branch) it should trigger.

    Args:
        event: Any DeliveryEvent variant.

    Returns:
        (repository, branch) for pushes and workflow completions, None for
        heartbeats, unrecognised kinds, and events whose repository or
        branch came through empty.
    """
    if isinstance(event, PushEvent):
        repository, branch = event.repository, branch_from_ref(event.ref)
    elif isinstance(event, WorkflowCompletionEvent):
        repository, branch = event.repository, event.head_branch
    else:
        return None

    if not repository or not branch:
        return None
    return repository, branch
