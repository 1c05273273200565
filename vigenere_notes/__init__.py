"""
vigenere_notes
==============
Multi-user text storage API. Users register, log in with a bearer token,
keep short texts, and run them through a Vigenère cipher with their own key.
Every authenticated request lands in the user's request history.
"""

__version__ = "1.0.0"

from .cipher import InvalidKeyError, decrypt, encrypt

__all__ = ["InvalidKeyError", "encrypt", "decrypt", "__version__"]
