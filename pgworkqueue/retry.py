import random


def backoff_delay(
    attempt: int,
    base_delay_seconds: float,
    max_delay_seconds: float,
    jitter: bool = True,
) -> float:
    """
    Seconds to wait before retry number ``attempt`` (starting at 0).

    Formula:
        delay = min(base * (2 ^ attempt), max_delay)
        if jitter:
            delay = random_uniform(0.5 * delay, delay)

    Jitter spreads out claimers that lost the same race so they do not
    collide again on the next candidate.
    """
    if attempt < 0:
        attempt = 0

    # 2^20 times any sane base is already past max_delay
    safe_attempt = min(attempt, 20)

    delay = min(base_delay_seconds * (2 ** safe_attempt), max_delay_seconds)

    if jitter:
        delay = random.uniform(delay / 2, delay)

    return delay
