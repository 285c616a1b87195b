"""Feature hashing for sparse vectors.

Tokens reaching the hash are ASCII after tokenization; UTF-8 bytes are
hashed so the function stays total for any string.
"""

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
_MASK_32 = 0xFFFFFFFF


def fnv1a32(token: str) -> int:
    """32-bit FNV-1a hash of ``token``."""
    hash_value = FNV_OFFSET_BASIS
    for byte in token.encode("utf-8"):
        hash_value ^= byte
        hash_value = (hash_value * FNV_PRIME) & _MASK_32
    return hash_value


def hash_token_to_index(token: str, feature_space: int) -> int:
    """Map ``token`` into ``[1, feature_space)``; index 0 stays reserved."""
    if feature_space < 2:
        raise ValueError(f"feature_space must be at least 2, got {feature_space}")
    return (fnv1a32(token) % (feature_space - 1)) + 1
