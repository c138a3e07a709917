import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from sensus.models.submission import Submission

BASE = datetime(2026, 10, 19, 9, 0, 0, tzinfo=timezone.utc)


def _submission(tags, identity="alice", minutes=0, content="text body") -> Submission:
    return Submission(
        content_type="text",
        content=content,
        identity_token=identity,
        emotional_tags=list(tags),
        created_at=BASE + timedelta(minutes=minutes),
    )


def _rows(db_path):
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    rows = [dict(r) for r in conn.execute("SELECT * FROM submissions")]
    conn.close()
    return rows


def test_insert_and_get_by_id(repository):
    original = _submission(["hopeful", "serene"])
    repository.insert(original)

    loaded = repository.get_by_id(original.id)

    assert loaded == original
    assert loaded.emotional_tags == ["hopeful", "serene"]
    assert loaded.created_at.tzinfo is not None


def test_get_by_id_unknown(repository):
    assert repository.get_by_id("nope") is None


def test_latest_for_identity_returns_most_recent(repository):
    repository.insert(_submission(["a"], minutes=0, content="first"))
    repository.insert(_submission(["a"], minutes=5, content="second"))
    repository.insert(_submission(["a"], identity="bob", minutes=10, content="bob's"))

    assert repository.latest_for_identity("alice").content == "second"
    assert repository.latest_for_identity("carol") is None


def test_claim_prefers_most_recent_compatible_candidate(repository):
    older = _submission(["hopeful"], identity="a", minutes=0)
    newer = _submission(["hopeful", "calm"], identity="b", minutes=5)
    unrelated = _submission(["furious"], identity="c", minutes=10)
    for s in (older, newer, unrelated):
        repository.insert(s)

    incoming = _submission(["hopeful", "joyful"], identity="d", minutes=15)
    claimed = repository.claim_candidate(incoming)

    assert claimed.id == newer.id
    assert claimed.status == "matched"
    assert claimed.matched_with == incoming.id
    stored_incoming = repository.get_by_id(incoming.id)
    assert stored_incoming.status == "matched"
    assert stored_incoming.matched_with == newer.id
    assert repository.get_by_id(older.id).status == "unmatched"


def test_claim_without_intersection_stores_unmatched(repository):
    repository.insert(_submission(["angry"], identity="a"))
    incoming = _submission(["serene"], identity="b", minutes=1)

    assert repository.claim_candidate(incoming) is None

    stored = repository.get_by_id(incoming.id)
    assert stored.status == "unmatched"
    assert stored.matched_with is None


def test_claim_skips_same_identity(repository):
    repository.insert(_submission(["hopeful"], identity="same"))
    incoming = _submission(["hopeful"], identity="same", minutes=1)

    assert repository.claim_candidate(incoming) is None


def test_claim_skips_already_matched(repository):
    first = _submission(["hopeful"], identity="a")
    repository.insert(first)
    assert repository.claim_candidate(_submission(["hopeful"], identity="b", minutes=1)).id == first.id

    third = _submission(["hopeful"], identity="c", minutes=2)
    claimed = repository.claim_candidate(third)

    # both earlier submissions are already paired
    assert claimed is None


def test_claim_respects_not_before(repository):
    repository.insert(_submission(["hopeful"], identity="a", minutes=0))
    incoming = _submission(["hopeful"], identity="b", minutes=30)

    assert repository.claim_candidate(incoming, not_before=BASE + timedelta(minutes=25)) is None


def test_concurrent_claims_take_a_candidate_once(repository, db_path):
    candidate = _submission(["hopeful"], identity="waiting")
    repository.insert(candidate)
    contenders = [
        _submission(["hopeful"], identity=f"user-{i}", minutes=1 + i) for i in range(12)
    ]

    with ThreadPoolExecutor(max_workers=12) as pool:
        results = list(pool.map(repository.claim_candidate, contenders))

    winners = [r for r in results if r is not None and r.id == candidate.id]
    assert len(winners) == 1

    rows = {row["id"]: row for row in _rows(db_path)}
    assert len(rows) == 13
    claimed_targets = [row["matched_with"] for row in rows.values() if row["matched_with"]]
    assert len(claimed_targets) == len(set(claimed_targets))
    for row in rows.values():
        if row["status"] == "matched":
            assert rows[row["matched_with"]]["matched_with"] == row["id"]
        else:
            assert row["matched_with"] is None
