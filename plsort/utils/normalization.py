from __future__ import annotations
import re
import unicodedata
from functools import lru_cache
from typing import Tuple

_feat_pattern = re.compile(r"\b(?:feat|ft|featuring)\b\.?", re.IGNORECASE)
# "2011 Remaster", "(Remastered 2011)", "- Remaster", "Mono", "Stereo"
_remaster_pattern = re.compile(
    r"""
    (?:
        [\(\[\-\s]+
        (?:
            (?:19|20)\d{2}\s*remaster(?:ed)?
            | remaster(?:ed)?(?:\s*(?:19|20)\d{2})?
            | mono | stereo | mono\s*version | stereo\s*version
        )
        [\)\]]*
    )
    """,
    re.IGNORECASE | re.VERBOSE
)
_version_pattern = re.compile(r"\b(radio|album|single|extended|live|remix|mix|edit|version|demo|deluxe|bonus|explicit|clean)\b", re.IGNORECASE)
_punct_pattern = re.compile(r"[\s\-_.]+")

_stopwords = {"the", "a", "an", "and", "or", "of", "in", "on", "at", "to", "for", "with", "from"}


@lru_cache(maxsize=8192)
def normalize_token(s: str) -> str:
    s = s.lower().strip()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(c for c in s if not unicodedata.combining(c))
    s = _feat_pattern.sub("", s)
    s = _remaster_pattern.sub("", s)
    s = _version_pattern.sub("", s)
    s = re.sub(r"[\[\](){}]", " ", s)
    s = re.sub(r"feat\..*", "", s)
    s = _punct_pattern.sub(" ", s)
    s = re.sub(r"[^a-z0-9 ]+", "", s)
    # Sorted tokens so "Beatles, The" and "The Beatles" compare equal
    tokens = [t for t in s.split() if t and t not in _stopwords]
    tokens.sort()
    return " ".join(tokens)


def normalize_title_artist(title: str, artist: str) -> Tuple[str, str]:
    return normalize_token(title), normalize_token(artist)


def search_text(s: str) -> str:
    """Strip bracketed variant info and featuring credits for a search query."""
    s = re.sub(r"\s*[\(\[].*?[\)\]]", "", s)
    s = re.sub(r"\s+-\s+.*$", "", s)
    s = re.sub(r"\s+\b(?:feat\.?|ft\.|featuring)\s.*$", "", s, flags=re.IGNORECASE)
    return " ".join(s.split())

__all__ = ["normalize_title_artist", "normalize_token", "search_text"]
