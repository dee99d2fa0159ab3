"""Proof-of-work primitives.

A solution is valid for a salt at a given difficulty when
``sha256(salt || solution)`` starts with at least ``difficulty`` zero bits.
"""

import hashlib
import secrets

SALT_LENGTH = 32
SOLUTION_LENGTH = 8


def leading_zero_bits(digest: bytes) -> int:
    """Count leading zero bits in a hash digest."""
    bits = 0
    for byte in digest:
        if byte == 0:
            bits += 8
            continue
        return bits + (8 - byte.bit_length())
    return bits


def new_salt() -> bytes:
    """Draw a fresh, unpredictable salt.

    Returns
    -------
    bytes
        ``SALT_LENGTH`` random bytes.
    """
    return secrets.token_bytes(SALT_LENGTH)


def verify(salt: bytes, solution: bytes, difficulty: int) -> bool:
    """Check that ``solution`` satisfies ``difficulty`` for ``salt``.

    Parameters
    ----------
    salt : bytes
        Challenge salt.
    solution : bytes
        Candidate solution supplied by the client.
    difficulty : int
        Required number of leading zero bits.

    Returns
    -------
    bool
        True if the work is sufficient.
    """
    digest = hashlib.sha256(salt + solution).digest()
    return leading_zero_bits(digest) >= difficulty


def solution_id(solution: bytes) -> str:
    """Identifier used to deduplicate accepted solutions."""
    return hashlib.sha256(solution).hexdigest()


def search(salt: bytes, difficulty: int, start: int = 0) -> bytes:
    """Brute-force a solution for ``salt`` at ``difficulty``.

    Candidates are big-endian counters starting at ``start``, so callers that
    need distinct solutions can search from different offsets.

    Parameters
    ----------
    salt : bytes
        Challenge salt.
    difficulty : int
        Required number of leading zero bits.
    start : int
        First counter value to try.

    Returns
    -------
    bytes
        The first candidate that verifies.
    """
    counter = start
    while True:
        candidate = counter.to_bytes(SOLUTION_LENGTH, "big")
        if verify(salt, candidate, difficulty):
            return candidate
        counter += 1
