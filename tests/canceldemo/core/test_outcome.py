from canceldemo.core.outcome import AggregateOutcome, FailureKind, Outcome, OutcomeKind


def test_constructors_set_kind():
    assert Outcome.completed({"a": 1}, status=200).isCompleted
    cancelled = Outcome.cancelled()
    assert cancelled.isCancelled
    assert cancelled.reason == "cancelled"
    failed = Outcome.failed(FailureKind.TRANSPORT, "refused")
    assert failed.isFailed
    assert failed.failure is FailureKind.TRANSPORT


def test_describe_mentions_origin_of_cancellation():
    assert "by server" in Outcome.cancelled("x", serverReported=True).describe()
    assert "locally" in Outcome.cancelled("x").describe()
    assert "[timeout]" in Outcome.failed(FailureKind.TIMEOUT, "slow").describe()


def test_aggregate_all_completed():
    aggregate = AggregateOutcome.of([Outcome.completed(), Outcome.completed()])
    assert aggregate.kind is OutcomeKind.COMPLETED
    assert not aggregate.isCancelled


def test_aggregate_cancelled_wins_over_failed():
    aggregate = AggregateOutcome.of([
        Outcome.completed(),
        Outcome.failed(FailureKind.HTTP_STATUS, "HTTP 500"),
        Outcome.cancelled(),
    ])
    assert aggregate.kind is OutcomeKind.CANCELLED


def test_aggregate_failed():
    aggregate = AggregateOutcome.of([Outcome.completed(), Outcome.failed(FailureKind.TRANSPORT, "down")])
    assert aggregate.kind is OutcomeKind.FAILED


def test_aggregate_empty_is_completed():
    assert AggregateOutcome.of([]).kind is OutcomeKind.COMPLETED
