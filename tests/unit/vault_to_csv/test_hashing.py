import pytest

from vault_to_csv.hashing import MAX_HASH_LENGTH, string_hash, utf16_units


@pytest.mark.unit
def test_string_hash_of_empty_string_is_zero() -> None:
    assert string_hash("") == "0"


@pytest.mark.unit
def test_string_hash_known_values() -> None:
    assert string_hash("a") == "97"
    # visited back to front: 98, then 98 * 31 + 97
    assert string_hash("ab") == "3135"
    assert string_hash("ba") == "3105"


@pytest.mark.unit
def test_string_hash_is_stable_and_order_sensitive() -> None:
    path = "/home/user/vault/Projects"

    assert string_hash(path) == string_hash(path)
    assert string_hash("abc") != string_hash("cba")


@pytest.mark.unit
def test_string_hash_wraps_to_signed_32_bit() -> None:
    value = int(string_hash("a much longer string that overflows 32 bits" * 3))

    assert -(2**31) <= value < 2**31


@pytest.mark.unit
def test_string_hash_counts_utf16_code_units() -> None:
    assert len(utf16_units("é")) == 1
    assert len(utf16_units("😀")) == 2
    assert string_hash("😀") == str(0xDE00 * 31 + 0xD83D)


@pytest.mark.unit
def test_string_hash_appends_length_to_truncated_input() -> None:
    text = "x" * (MAX_HASH_LENGTH + 1)

    value, length = string_hash(text).rsplit("-", 1)

    assert length == str(MAX_HASH_LENGTH + 1)
    assert value.lstrip("-").isdigit()
    assert isinstance(int(string_hash("x" * MAX_HASH_LENGTH)), int)


@pytest.mark.unit
def test_string_hash_ignores_elided_middle_of_same_length_strings() -> None:
    # Known collision: only the first and last 5,000 units are hashed.
    head = "h" * (MAX_HASH_LENGTH // 2)
    tail = "t" * (MAX_HASH_LENGTH // 2)
    first = f"{head}AAAA{tail}"
    second = f"{head}BBBB{tail}"

    assert string_hash(first) == string_hash(second)


@pytest.mark.unit
def test_string_hash_distinguishes_long_strings_of_different_length() -> None:
    head = "h" * (MAX_HASH_LENGTH // 2)
    tail = "t" * (MAX_HASH_LENGTH // 2)
    short = f"{head}A{tail}"
    long = f"{head}AA{tail}"

    short_value, short_length = string_hash(short).rsplit("-", 1)
    long_value, long_length = string_hash(long).rsplit("-", 1)

    assert short_value == long_value
    assert short_length != long_length
