"""
Atbash letter substitution used to obfuscate message bodies.

A maps to Z, B to Y and so on, separately for upper and lower case Latin
letters. Anything else passes through untouched. The transform is its own
inverse, so the same function both encrypts and decrypts.

This is obfuscation only and gives no confidentiality.
"""

import string


_TABLE = str.maketrans(
    string.ascii_uppercase + string.ascii_lowercase,
    string.ascii_uppercase[::-1] + string.ascii_lowercase[::-1],
)


def transform(text: str) -> str:
    """Mirror every ASCII letter within its alphabet."""
    return text.translate(_TABLE)


encrypt = transform
decrypt = transform
