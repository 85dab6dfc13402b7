from core.normalizer import normalize_event
from schemas.events import PushEvent


def test_push_normalizes_smoke() -> None:
    event = PushEvent(repository="acme/api", ref="refs/heads/main")
    assert normalize_event(event) == ("acme/api", "main")
