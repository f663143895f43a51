"""
Unit tests for retry backoff.
"""

import pytest

from pgworkqueue.retry import backoff_delay


def test_exponential_growth_without_jitter():
    delays = [backoff_delay(n, 0.01, 10.0, jitter=False) for n in range(4)]
    assert delays == pytest.approx([0.01, 0.02, 0.04, 0.08])


def test_capped_at_max():
    assert backoff_delay(50, 1.0, 5.0, jitter=False) == 5.0


def test_negative_attempt_treated_as_first():
    assert backoff_delay(-3, 0.5, 10.0, jitter=False) == 0.5


def test_jitter_stays_within_half_to_full_delay():
    for _ in range(100):
        delay = backoff_delay(3, 0.1, 10.0)
        assert 0.4 <= delay <= 0.8


def test_zero_base_means_no_wait():
    assert backoff_delay(5, 0.0, 0.0) == 0.0
