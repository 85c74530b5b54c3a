"""
Fibonacci computation.
"""

from shared.errors import ComputeFailureError


def fib(n: int) -> int:
    """Return fib(n) with fib(0) = 0 and fib(1) = 1.

    Iterative with two running accumulators, so cost is linear in n and
    independent of any previous call.
    """
    if isinstance(n, bool) or not isinstance(n, int):
        raise ComputeFailureError("Index must be an integer", {"index": repr(n)})
    if n < 0:
        raise ComputeFailureError("Index must not be negative", {"index": n})
    if n == 0:
        return 0
    if n == 1:
        return 1

    previous, current = 0, 1
    for _ in range(n - 1):
        previous, current = current, previous + current
    return current
