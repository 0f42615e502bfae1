from single_doc_chat.utils.polling import poll_until


def test_satisfied_condition_does_not_sleep():
    sleeps = []
    result = poll_until(lambda: True, max_attempts=5, interval=1.0, sleep=sleeps.append)

    assert result.ok and result.attempts == 1
    assert sleeps == []


def test_backoff_sequence_is_capped():
    sleeps = []
    answers = iter([False, False, False, True])
    result = poll_until(
        lambda: next(answers),
        max_attempts=10,
        interval=1.0,
        backoff=3.0,
        max_interval=5.0,
        sleep=sleeps.append,
    )

    assert result.ok and result.attempts == 4
    assert sleeps == [1.0, 3.0, 5.0]
    assert result.waited_seconds == 9.0


def test_exhaustion_returns_timed_out_result():
    sleeps = []
    result = poll_until(lambda: False, max_attempts=3, interval=0.5, sleep=sleeps.append)

    assert result.timed_out
    assert result.attempts == 3
    # no sleep after the final check
    assert sleeps == [0.5, 0.5]
