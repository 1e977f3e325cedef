"""
Keyword extraction from page text, headings and image alt text
"""

import re
from collections import Counter
from typing import Dict, Iterable, List, Tuple

from .models import KeywordData


STOP_WORDS = frozenset([
    'the', 'be', 'to', 'of', 'and', 'a', 'in', 'that', 'have', 'i', 'it', 'for',
    'not', 'on', 'with', 'he', 'as', 'you', 'do', 'at', 'this', 'but', 'his',
    'by', 'from', 'they', 'we', 'say', 'her', 'she', 'or', 'an', 'will', 'my',
    'one', 'all', 'would', 'there', 'their',
    'about', 'after', 'again', 'against', 'because', 'before', 'being', 'below',
    'between', 'could', 'doing', 'during', 'every', 'further', 'having', 'other',
    'should', 'since', 'these', 'those', 'through', 'under', 'until', 'where',
    'which', 'while', 'whose', 'within', 'without', 'yours', 'yourself',
    'itself', 'ourselves', 'themselves', 'always', 'never', 'still', 'really',
])

MIN_KEYWORD_LENGTH = 5

# Prefix caps per pool when building the combined keyword list
CONTENT_POOL_CAP = 20
HEADING_POOL_CAP = 10
ALT_TEXT_POOL_CAP = 10

_PUNCTUATION = re.compile(r'[^\w\s]')


def tokenize(text: str) -> List[str]:
    """Lower-case, strip punctuation and split on whitespace"""
    return _PUNCTUATION.sub(' ', (text or '').lower()).split()


def is_keyword(token: str) -> bool:
    return (
        len(token) >= MIN_KEYWORD_LENGTH
        and token not in STOP_WORDS
        and not token.isdigit()
    )


def word_frequencies(text: str) -> Counter:
    """Frequency table of keyword tokens, in first-seen order"""
    return Counter(token for token in tokenize(text) if is_keyword(token))


def top_keywords(frequencies: Counter, limit: int) -> List[Tuple[str, int]]:
    # most_common sorts stably, so equal counts keep first-seen order
    return frequencies.most_common(limit)


def _unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def pool_keywords(texts: Iterable[str]) -> List[str]:
    """Distinct keyword tokens across several short texts, in document order"""
    return _unique(
        token
        for text in texts
        for token in tokenize(text)
        if is_keyword(token)
    )


def split_meta_keywords(content: str) -> List[str]:
    return _unique(k.strip() for k in (content or '').split(',') if k.strip())


def extract_keywords(
    body_text: str,
    meta_keywords: str = '',
    heading_texts: Iterable[str] = (),
    alt_texts: Iterable[str] = (),
    limit: int = 30,
) -> KeywordData:
    """Build the four keyword pools and their bounded union"""
    frequencies = word_frequencies(body_text)
    content_keywords = [word for word, _ in top_keywords(frequencies, limit)]
    meta = split_meta_keywords(meta_keywords)
    headings = pool_keywords(heading_texts)
    alts = pool_keywords(alt_texts)

    combined = _unique(
        meta
        + content_keywords[:CONTENT_POOL_CAP]
        + headings[:HEADING_POOL_CAP]
        + alts[:ALT_TEXT_POOL_CAP]
    )

    keyword_frequency: Dict[str, int] = dict(frequencies)
    return KeywordData(
        meta_keywords=meta,
        content_keywords=content_keywords,
        heading_keywords=headings,
        alt_text_keywords=alts,
        all_keywords=combined,
        keyword_frequency=keyword_frequency,
    )
