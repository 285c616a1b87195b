"""Query tokenization and storefront synonym expansion.

Expansion only feeds the sparse (lexical) side of a hybrid query; the dense
embedding always sees the raw question.
"""

import re
from typing import Dict, List, Optional

# Generic storefront vocabulary
GENERIC_SYNONYMS: Dict[str, List[str]] = {
    "stuff": ["products", "items", "parts", "catalog", "collections"],
    "things": ["products", "items", "parts"],
    "have": ["sell", "offer", "stock", "carry"],
    "sell": ["offer", "stock", "carry"],
    "inventory": ["stock", "products", "catalog"],
}

# Used by the stable document-side generator only.
STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "for", "to", "of",
    "in", "on", "is", "it", "with", "by", "at",
})

_EXPANSION_SPLIT = re.compile(r"[^a-z0-9]+")
_QUERY_SPLIT = re.compile(r"[^a-z0-9+\-_]+")
_SINGLE_ALNUM = re.compile(r"^[a-z0-9]$")


def expand_query(query: str, synonyms: Optional[Dict[str, List[str]]] = None) -> str:
    """Append known synonyms after each matching word.

    Returns the original text followed by every word and its expansions,
    e.g. ``"Got stuff?"`` becomes ``"Got stuff? got stuff products items ..."``.
    """
    table = GENERIC_SYNONYMS if synonyms is None else synonyms
    expanded: List[str] = []
    for token in _EXPANSION_SPLIT.split(query.lower()):
        if not token:
            continue
        expanded.append(token)
        expanded.extend(table.get(token, ()))
    return f"{query} {' '.join(expanded)}".strip()


def tokenize_query(text: str) -> List[str]:
    """Split query text into tokens, keeping ``+``, ``-`` and ``_`` inside them.

    Pure single letters and digits are noise; short codes such as ``c++`` or
    ``x-1`` survive.
    """
    if not text:
        return []
    tokens = [t for t in _QUERY_SPLIT.split(text.lower()) if t]
    return [t for t in tokens if not (len(t) == 1 and _SINGLE_ALNUM.match(t))]


def tokenize_text(text: str) -> List[str]:
    """Document tokenizer: alphanumeric runs longer than one character."""
    if not text:
        return []
    return [t for t in _EXPANSION_SPLIT.split(text.lower()) if len(t) > 1]
