"""
Blinded four-squares range proof that min <= x <= max.

With w = x - min and t = max - x (both >= 0), each is written as a sum of
four squares. A single random r links the two halves:

    c2 = w + r*h          lower_i = s_i^2 + rParts_i*h,   sum(rParts) = r
    c1 = t - r*h          upper_i = u_i^2 - uParts_i*h,   sum(uParts) = r

so sum(lower_i) = c2 and sum(upper_i) = c1 (mod n), and c1 + c2 = max - min.
Every scalar is committed as scalar*G. h = hash_to_scalar("H").
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from securerange.crypto.ec import (
    hash_to_scalar,
    mod_n,
    random_scalar,
    random_scalar_nonzero,
    scalar_mul_g,
)
from securerange.crypto.four_squares import FourSquares, four_squares
from securerange.errors import (
    CryptoInvariantError,
    ProofLivenessError,
    RangeProofConstructionError,
)

logger = logging.getLogger(__name__)

H_DOMAIN = "H"
MAX_BITLEN = 32
MAX_WIRE_VALUE = 0xFFFFFFFF
DEFAULT_MAX_ATTEMPTS = 1000

Points4 = Tuple[bytes, bytes, bytes, bytes]
Scalars4 = Tuple[int, int, int, int]


@dataclass(frozen=True)
class RangeProof:
    min: int
    max: int
    bitlen: int
    c1: bytes
    c2: bytes
    lower_commit: Points4
    upper_commit: Points4


@dataclass(frozen=True)
class ProofScalars:
    """The ten scalars of one attempt, before commitment."""

    c1: int
    c2: int
    lower: Scalars4
    upper: Scalars4

    def all(self) -> Tuple[int, ...]:
        return (self.c1, self.c2) + self.lower + self.upper


def _additive_shares(r: int) -> Scalars4:
    """Four uniform-looking scalars that sum to r mod n."""
    parts = [random_scalar(), random_scalar(), random_scalar()]
    parts.append(mod_n(r - sum(parts)))
    return tuple(parts)


def derive_proof_scalars(
    w: int,
    t: int,
    w_squares: FourSquares,
    t_squares: FourSquares,
    h: int,
) -> ProofScalars:
    """
    Run one blinding attempt with fresh randomness.

    Raises CryptoInvariantError if any scalar is zero mod n or the
    per-term sums do not reproduce c1/c2.
    """
    r = random_scalar_nonzero()
    r_parts = _additive_shares(r)
    u_parts = _additive_shares(r)

    lower = tuple(mod_n(s * s + rp * h) for s, rp in zip(w_squares, r_parts))
    upper = tuple(mod_n(u * u - up * h) for u, up in zip(t_squares, u_parts))

    c2 = mod_n(w + r * h)
    c1 = mod_n(t - r * h)

    if mod_n(sum(lower)) != c2:
        raise CryptoInvariantError("lower terms do not sum to c2")
    if mod_n(sum(upper)) != c1:
        raise CryptoInvariantError("upper terms do not sum to c1")

    scalars = ProofScalars(c1=c1, c2=c2, lower=lower, upper=upper)
    if any(k == 0 for k in scalars.all()):
        raise CryptoInvariantError("degenerate zero scalar")
    return scalars


def _check_inputs(min_value: int, max_value: int, bitlen: int, x: int) -> None:
    for name, v in (("min", min_value), ("max", max_value), ("bitlen", bitlen), ("x", x)):
        if isinstance(v, bool) or not isinstance(v, int):
            raise RangeProofConstructionError(f"{name} must be an integer")
    if min_value < 0 or max_value < 0 or x < 0:
        raise RangeProofConstructionError("min/max/x must be >= 0")
    if min_value > max_value:
        raise RangeProofConstructionError(f"min > max ({min_value} > {max_value})")
    if max_value > MAX_WIRE_VALUE:
        raise RangeProofConstructionError("max does not fit in 32 bits")
    if not min_value <= x <= max_value:
        raise RangeProofConstructionError("x not in [min, max]")
    if not 1 <= bitlen <= MAX_BITLEN:
        raise RangeProofConstructionError(f"bitlen must be 1..{MAX_BITLEN}, got {bitlen}")


def build_range_proof(
    min_value: int,
    max_value: int,
    bitlen: int,
    x: int,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> RangeProof:
    """
    Build a blinded proof that min_value <= x <= max_value.

    :param min_value: public lower bound
    :param max_value: public upper bound
    :param bitlen: declared bit length policy (1..32), forwarded to the verifier
    :param x: secret value
    :param max_attempts: retry cap for degenerate randomness
    :return: RangeProof with all ten commitments
    """
    _check_inputs(min_value, max_value, bitlen, x)

    w = x - min_value
    t = max_value - x
    w_squares = four_squares(w)
    t_squares = four_squares(t)

    h = hash_to_scalar(H_DOMAIN)
    if h == 0:
        raise CryptoInvariantError("hash_to_scalar(H) is zero")

    for attempt in range(1, max_attempts + 1):
        try:
            scalars = derive_proof_scalars(w, t, w_squares, t_squares, h)
            lower_commit = tuple(scalar_mul_g(k) for k in scalars.lower)
            upper_commit = tuple(scalar_mul_g(k) for k in scalars.upper)
            c1 = scalar_mul_g(scalars.c1)
            c2 = scalar_mul_g(scalars.c2)
        except CryptoInvariantError as e:
            logger.debug("[PROOF] attempt %d discarded: %s", attempt, e)
            continue

        return RangeProof(
            min=min_value,
            max=max_value,
            bitlen=bitlen,
            c1=c1,
            c2=c2,
            lower_commit=lower_commit,
            upper_commit=upper_commit,
        )

    raise ProofLivenessError(f"range proof construction failed after {max_attempts} attempts")
