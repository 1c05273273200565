"""
Vigenère polyalphabetic cipher.

Each ASCII letter of the text is shifted by the alphabet position of the
next key letter; the key repeats as often as needed. Anything that is not an
ASCII letter (digits, punctuation, whitespace, accented letters) is copied
through unchanged and does not consume a key letter, so the key stream stays
aligned with the letters alone.

Examples:
    >>> encrypt("HELLO", "key")
    'RIJVS'
    >>> decrypt("RIJVS", "key")
    'HELLO'
    >>> encrypt("Attack at Dawn!", "LEMON")
    'Lxfopv ef Rnhr!'
"""

import string
from typing import List

ALPHABET_SIZE = 26


class InvalidKeyError(ValueError):
    """Raised when a cipher key contains anything other than ASCII letters."""


def _is_letter(ch: str) -> bool:
    return ch in string.ascii_letters


def validate_key(key: str) -> None:
    """
    Check that `key` is usable.

    An empty key is accepted (it turns the cipher into the identity
    transform). Any other key must consist of ASCII letters only.

    Raises:
        InvalidKeyError: if the key holds a non-letter character
    """
    for position, ch in enumerate(key):
        if not _is_letter(ch):
            raise InvalidKeyError(
                f"Key must contain only letters A-Z (got {ch!r} at position {position})"
            )


def _key_shifts(key: str) -> List[int]:
    return [ord(ch) - ord("a") for ch in key.lower()]


def _transform(text: str, key: str, direction: int) -> str:
    validate_key(key)
    if not key:
        return text

    shifts = _key_shifts(key)
    result = []
    k = 0
    for ch in text:
        if _is_letter(ch):
            base = ord("A") if ch.isupper() else ord("a")
            shift = shifts[k % len(shifts)]
            result.append(chr((ord(ch) - base + direction * shift) % ALPHABET_SIZE + base))
            k += 1
        else:
            result.append(ch)
    return "".join(result)


def encrypt(plaintext: str, key: str) -> str:
    """Encrypt `plaintext` with `key`. Case and non-letters are preserved."""
    return _transform(plaintext, key, 1)


def decrypt(ciphertext: str, key: str) -> str:
    """Reverse `encrypt` for the same key."""
    return _transform(ciphertext, key, -1)


__all__ = ["InvalidKeyError", "validate_key", "encrypt", "decrypt"]
