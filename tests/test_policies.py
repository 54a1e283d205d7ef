import pytest

from tollbooth import ExponentialBackoffPolicy, XorBackoffPolicy, coerce_backoff
from tollbooth.policies import FunctionalBackoffPolicy


def test_string_policies():
    assert isinstance(coerce_backoff(None), XorBackoffPolicy)
    assert isinstance(coerce_backoff("xor"), XorBackoffPolicy)
    assert isinstance(coerce_backoff("Exponential"), ExponentialBackoffPolicy)
    with pytest.raises(ValueError):
        coerce_backoff("linear")
    with pytest.raises(TypeError):
        coerce_backoff(3)


def test_xor_schedule_is_bitwise_not_power():
    pol = XorBackoffPolicy()
    assert [pol.delay(n) for n in (1, 2, 3, 4, 5)] == [3.0, 0.0, 1.0, 6.0, 7.0]


def test_exponential_grows_and_caps():
    pol = ExponentialBackoffPolicy(base=1.0, growth=2.0, cap=5.0)
    assert [pol.delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


def test_callable_policies():
    by_attempt = coerce_backoff(lambda attempt: attempt * 0.1)
    assert isinstance(by_attempt, FunctionalBackoffPolicy)
    assert by_attempt.delay(3) == pytest.approx(0.3)

    seen = []

    def with_error(attempt, error):
        seen.append(error)
        return 2.0

    err = RuntimeError("x")
    assert coerce_backoff(with_error).delay(1, err) == 2.0  # noqa: PLR2004
    assert seen == [err]


def test_negative_custom_delay_rejected():
    with pytest.raises(ValueError):
        coerce_backoff(lambda attempt: -1).delay(1)
