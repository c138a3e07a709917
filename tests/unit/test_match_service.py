from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from sensus.models.submission import Submission
from sensus.services.match_service import MatchEngine


def _text(content, tags, identity) -> Submission:
    return Submission(content_type="text", content=content, identity_token=identity, emotional_tags=tags)


def test_pairs_with_waiting_submission_sharing_a_tag(repository):
    waiting = _text("Sunlight through the window", ["hopeful", "serene"], "early-bird")
    repository.insert(waiting)
    engine = MatchEngine(repository)

    incoming = _text("I feel hopeful today", ["hopeful", "joyful"], "newcomer")
    match = engine.try_pair(incoming)

    assert match.id == waiting.id
    assert match.content == "Sunlight through the window"
    assert incoming.status == "matched"
    assert incoming.matched_with == waiting.id

    stored_waiting = repository.get_by_id(waiting.id)
    assert stored_waiting.status == "matched"
    assert stored_waiting.matched_with == incoming.id
    assert repository.get_by_id(incoming.id).matched_with == waiting.id


def test_no_shared_tags_leaves_submission_waiting(repository):
    repository.insert(_text("storm", ["chaotic", "angry"], "a"))
    engine = MatchEngine(repository)

    incoming = _text("quiet lake", ["serene", "calm"], "b")

    assert engine.try_pair(incoming) is None
    assert incoming.status == "unmatched"
    stored = repository.get_by_id(incoming.id)
    assert stored.status == "unmatched"
    assert stored.matched_with is None


def test_waiting_submission_becomes_candidate_later(repository):
    engine = MatchEngine(repository)
    first = _text("quiet lake", ["serene"], "a")
    assert engine.try_pair(first) is None

    second = _text("still morning", ["serene", "calm"], "b")

    assert engine.try_pair(second).id == first.id


def test_untagged_submission_is_queued_without_claim():
    repository = MagicMock()
    engine = MatchEngine(repository)
    submission = _text("...", [], "a")

    assert engine.try_pair(submission) is None
    repository.insert.assert_called_once_with(submission)
    repository.claim_candidate.assert_not_called()


def test_candidate_age_limit_is_passed_to_store():
    repository = MagicMock()
    repository.claim_candidate.return_value = None
    engine = MatchEngine(repository, max_candidate_age=timedelta(minutes=5))
    now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    submission = _text("hi", ["hopeful"], "a")

    engine.try_pair(submission, now=now)

    repository.claim_candidate.assert_called_once_with(
        submission, not_before=datetime(2026, 10, 19, 11, 55, tzinfo=timezone.utc)
    )


def test_no_age_limit_by_default():
    repository = MagicMock()
    repository.claim_candidate.return_value = None

    MatchEngine(repository).try_pair(_text("hi", ["hopeful"], "a"))

    assert repository.claim_candidate.call_args.kwargs["not_before"] is None
