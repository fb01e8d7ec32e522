"""Lagrange four-square decomposition: n = a^2 + b^2 + c^2 + d^2."""

import math
import secrets
from typing import Dict, Optional, Tuple

from securerange.errors import FourSquaresExhaustion

FourSquares = Tuple[int, int, int, int]

DEFAULT_MAX_ATTEMPTS = 20000


def _split_powers_of_four(n: int) -> Tuple[int, int]:
    """Return (m, k) with n = 4^k * m and 4 not dividing m. n > 0."""
    k = 0
    while n % 4 == 0:
        n //= 4
        k += 1
    return n, k


def _is_three_square_excluded(m: int) -> bool:
    """True if m has the form 4^j(8l+7), i.e. is not a sum of three squares."""
    if m == 0:
        return False
    m, _ = _split_powers_of_four(m)
    return m % 8 == 7


def _two_squares(m: int, roots: Dict[int, int]) -> Optional[Tuple[int, int]]:
    """Return (c, d) with c^2 + d^2 = m and c <= d, or None."""
    # 4^j(4l+3) is never a sum of two squares
    if m and _split_powers_of_four(m)[0] % 4 == 3:
        return None
    for c in range(math.isqrt(m // 2) + 1):
        d = roots.get(m - c * c)
        if d is not None:
            return c, d
    return None


def four_squares(n: int, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> FourSquares:
    """
    Decompose a nonnegative integer into four squares.

    Powers of four are factored out first: every representation of 4m is
    twice a representation of m, so the search runs on the reduced value
    and the result is scaled back up.

    A randomized search (a, b uniform in [0, isqrt(m)], then a two-square
    search on the remainder) runs for at most `max_attempts` draws. If it
    comes up empty, an exhaustive scan over (a, b) in increasing order takes
    over, skipping rows whose remainder cannot be a sum of three squares;
    Lagrange's theorem guarantees it terminates with a result.

    :param n: value to decompose, n >= 0
    :param max_attempts: randomized-phase budget (0 skips straight to the scan)
    :return: (a, b, c, d), all >= 0
    """
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        raise ValueError("n must be a non-negative integer")
    if n == 0:
        return (0, 0, 0, 0)

    m, k = _split_powers_of_four(n)
    scale = 1 << k
    limit = math.isqrt(m)
    roots = {i * i: i for i in range(limit + 1)}

    for _ in range(max_attempts):
        a = secrets.randbelow(limit + 1)
        b = secrets.randbelow(limit + 1)
        r1 = m - a * a - b * b
        if r1 < 0:
            continue
        cd = _two_squares(r1, roots)
        if cd is not None:
            return (a * scale, b * scale, cd[0] * scale, cd[1] * scale)

    for a in range(limit + 1):
        r0 = m - a * a
        if _is_three_square_excluded(r0):
            continue
        for b in range(math.isqrt(r0) + 1):
            cd = _two_squares(r0 - b * b, roots)
            if cd is not None:
                return (a * scale, b * scale, cd[0] * scale, cd[1] * scale)

    raise FourSquaresExhaustion(f"no four-squares representation found for {n}")
