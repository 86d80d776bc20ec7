"""
Pure game logic (no sockets, no storage).
We compute two feedback numbers for each guess:
- correct_position: how many indices are exactly correct (right digit, right place)
- correct_digit: total count of guess digits that appear anywhere in the secret,
  including those already in correct position.

Secrets and guesses never repeat a digit in this game, but the scoring
does not rely on it.
"""

from collections import Counter
from typing import Tuple

from .types import Digits

DIGITS = "0123456789"


def compute_feedback(secret: Digits, guess: Digits) -> Tuple[int, int]:
    """
    Example:
      secret = "1357"
      guess  = "1234"
      correct_position = 1  (the leading 1)
      correct_digit    = 2  (1 and 3 appear in both)
      Returns a tuple: (correct_position, correct_digit)
    """

    # 0. Validate lengths match
    if len(secret) != len(guess):
        raise ValueError("Secret and guess must be the same length.")

    # 1. Count exact position matches --> correct_position
    correct_position = 0
    for secret_digit, guess_digit in zip(secret, guess):
        if secret_digit == guess_digit:
            correct_position += 1

    # 2. Overlap is the sum of the smaller count for each digit --> correct_digit
    secret_counts = Counter(secret)
    guess_counts = Counter(guess)
    correct_digit = 0
    for digit, count in guess_counts.items():
        correct_digit += min(count, secret_counts.get(digit, 0))

    return (correct_position, correct_digit)


def is_valid_number(candidate, required_length: int) -> bool:
    """
    A valid secret/guess is exactly `required_length` ASCII digits with no digit repeated.
    Never raises: anything else (None, ints, "12a4", "1123") is just invalid.
    """
    if not isinstance(candidate, str):
        return False
    if len(candidate) != required_length or required_length == 0:
        return False

    for char in candidate:
        if char not in DIGITS:
            return False

    return len(set(candidate)) == len(candidate)


def is_win(secret: Digits, guess: Digits) -> bool:
    """
    Win = every position matches.
    """
    if len(secret) == 0 or len(secret) != len(guess):
        return False
    correct_position, _ = compute_feedback(secret, guess)
    return correct_position == len(secret)
