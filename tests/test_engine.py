"""
Testing pure game logic.
"""

from itertools import permutations

import pytest

from decode.engine import compute_feedback, is_valid_number, is_win


def test_feedback_no_matches():
    correct_position, correct_digit = compute_feedback("0123", "4567")

    assert correct_position == 0
    assert correct_digit == 0


def test_feedback_example_from_the_rules():
    # secret 1357, guess 1234: 1 and 3 are in the secret, only 1 is in place
    correct_position, correct_digit = compute_feedback("1357", "1234")

    assert correct_position == 1
    assert correct_digit == 2


def test_feedback_all_digits_wrong_places():
    correct_position, correct_digit = compute_feedback("1234", "4321")

    assert correct_position == 0
    assert correct_digit == 4


def test_feedback_self_guess_is_full_match():
    for secret in ("012", "1357", "98765", "13579024"):
        assert compute_feedback(secret, secret) == (len(secret), len(secret))


def test_feedback_counts_repeated_digits_once_per_occurrence():
    # not reachable in play (validator forbids repeats), but the count stays a multiset overlap
    correct_position, correct_digit = compute_feedback("2255", "2525")

    assert correct_position == 2
    assert correct_digit == 4


def test_feedback_bounds_hold_for_every_guess_of_a_secret():
    secret = "0123"
    for combo in permutations("012345", 4):
        guess = "".join(combo)
        correct_position, correct_digit = compute_feedback(secret, guess)
        assert 0 <= correct_position <= correct_digit <= 4
        assert correct_digit == len(set(secret) & set(guess))


def test_feedback_rejects_length_mismatch():
    with pytest.raises(ValueError):
        compute_feedback("123", "1234")


def test_is_valid_number_accepts_distinct_digits():
    assert is_valid_number("1357", 4) is True
    assert is_valid_number("0987", 4) is True
    assert is_valid_number("012", 3) is True
    assert is_valid_number("01234567", 8) is True


def test_is_valid_number_accepts_every_permutation():
    for combo in permutations("2468"):
        assert is_valid_number("".join(combo), 4)


@pytest.mark.parametrize("candidate", ["", "123", "12345", "1123", "12a4", "12 4", "-123", "١٢٣٤", None, 1234])
def test_is_valid_number_rejects(candidate):
    assert is_valid_number(candidate, 4) is False


def test_is_win_true_and_false():
    assert is_win("1234", "1234") is True
    assert is_win("1234", "1243") is False
    assert is_win("1234", "123") is False
