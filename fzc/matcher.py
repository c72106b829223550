"""
Match & rank engine

Scores catalog entries against the search query. The composite score mixes a
fuzzy subsequence score with token-level bonuses so that queries such as
"cache clear" and "clear cache" both put "artisan cache:clear" first.
"""

import re
from collections import namedtuple

from fzc.model import provider_name

SearchItem = namedtuple('SearchItem', ['kind', 'index'])

ITEM_COMMAND = 'command'
ITEM_INTERNAL = 'internal'

MatchScore = namedtuple('MatchScore', ['total', 'fuzzy'])

# Subsequence scoring
SCORE_MATCH = 16
BONUS_BOUNDARY = 8
BONUS_CONSECUTIVE = 10
BONUS_FIRST_CHAR = 4
PENALTY_GAP_START = 3
PENALTY_GAP_EXTENSION = 1

# Composite ranking bonuses. Tuned against real catalogs; keep the relative order.
WEIGHT_FUZZY = 10
BONUS_EXACT_TOKEN = 12_000
BONUS_PARTIAL_TOKEN = 6_000
BONUS_COVERAGE = 10_000
BONUS_DESCRIPTION = 2_500
BONUS_ALL_IN_NAME = 35_000
BONUS_IN_ORDER = 10_000
BONUS_CONTIGUOUS = 10_000
BONUS_PHRASE = 15_000

BONUS_INTERNAL_CONTAINS = 10_000
INTERNAL_EMPTY_SCORE = 1

MATCH_NONE = 0
MATCH_PARTIAL = 1
MATCH_EXACT = 2

_TOKEN_SPLIT = re.compile(r'[\W_]+')


def tokenize(text):
    """Lowercase alphanumeric runs of a string"""
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if token]


def fuzzy_score(haystack, needle):
    """
    Score needle as an ordered subsequence of haystack.

    Returns 0 when needle is not a subsequence. Otherwise every matched
    character earns SCORE_MATCH, word-boundary and consecutive matches earn
    bonuses and skipped characters between two matches cost a gap penalty.
    The best alignment wins; any match scores at least 1.
    """
    if not needle or len(needle) > len(haystack):
        return 0

    # Cheap greedy check before doing the alignment
    position = 0
    for char in needle:
        position = haystack.find(char, position)
        if position < 0:
            return 0
        position += 1

    positions = []
    for char in needle:
        found = [index for index, value in enumerate(haystack) if value == char]
        positions.append(found)

    # best[j] = best score with the current needle char matched at haystack[j]
    previous = {}
    for j in positions[0]:
        score = SCORE_MATCH + _boundary_bonus(haystack, j)
        if j == 0:
            score += BONUS_FIRST_CHAR
        previous[j] = score

    for i in range(1, len(needle)):
        current = {}
        for j in positions[i]:
            best = None
            for k, prev_score in previous.items():
                if k >= j:
                    continue
                if k == j - 1:
                    candidate = prev_score + BONUS_CONSECUTIVE
                else:
                    gap = j - k - 1
                    candidate = prev_score - PENALTY_GAP_START - PENALTY_GAP_EXTENSION * (gap - 1)
                if best is None or candidate > best:
                    best = candidate
            if best is not None:
                current[j] = best + SCORE_MATCH + _boundary_bonus(haystack, j)
        if not current:
            return 0
        previous = current

    return max(1, max(previous.values()))


def _boundary_bonus(haystack, index):
    if index == 0 or not haystack[index - 1].isalnum():
        return BONUS_BOUNDARY
    return 0


def token_match_quality(token, term):
    if token == term:
        return MATCH_EXACT
    if token.startswith(term) or term in token:
        return MATCH_PARTIAL
    return MATCH_NONE


def terms_in_order(name_terms, query_terms):
    """Each query term matches a later name token than the previous one (gaps allowed)"""
    if not query_terms:
        return False

    cursor = 0
    for term in query_terms:
        while cursor < len(name_terms):
            matched = token_match_quality(name_terms[cursor], term) > MATCH_NONE
            cursor += 1
            if matched:
                break
        else:
            return False
    return True


def terms_contiguous(name_terms, query_terms):
    """All query terms match a run of adjacent name tokens, in order"""
    if not query_terms or len(query_terms) > len(name_terms):
        return False

    for start in range(len(name_terms) - len(query_terms) + 1):
        if all(
            token_match_quality(name_terms[start + offset], term) > MATCH_NONE
            for offset, term in enumerate(query_terms)
        ):
            return True
    return False


def score_command(query, query_terms, entry):
    """Composite score of one entry, or None when it does not match at all"""
    haystack = entry.name.lower()
    if entry.description:
        haystack += ' ' + entry.description.lower()

    fuzzy = fuzzy_score(haystack, query.lower())
    if not query_terms:
        return MatchScore(fuzzy * WEIGHT_FUZZY, fuzzy)

    name_terms = tokenize(entry.name)
    haystack_terms = tokenize(haystack)

    exact_hits = 0
    partial_hits = 0
    coverage_hits = 0
    description_hits = 0

    for term in query_terms:
        best = max((token_match_quality(token, term) for token in name_terms), default=MATCH_NONE)
        if best == MATCH_EXACT:
            exact_hits += 1
            coverage_hits += 1
        elif best == MATCH_PARTIAL:
            partial_hits += 1
            coverage_hits += 1
        elif any(token_match_quality(token, term) > MATCH_NONE for token in haystack_terms):
            coverage_hits += 1
            description_hits += 1

    if fuzzy == 0 and coverage_hits == 0:
        return None

    all_in_name = all(
        any(token_match_quality(token, term) > MATCH_NONE for token in name_terms)
        for term in query_terms
    )
    query_phrase = ' '.join(query_terms)
    phrase_match = bool(query_phrase) and query_phrase in ' '.join(name_terms)

    total = (
        fuzzy * WEIGHT_FUZZY
        + exact_hits * BONUS_EXACT_TOKEN
        + partial_hits * BONUS_PARTIAL_TOKEN
        + coverage_hits * BONUS_COVERAGE
        + description_hits * BONUS_DESCRIPTION
    )
    if all_in_name:
        total += BONUS_ALL_IN_NAME
    if terms_in_order(name_terms, query_terms):
        total += BONUS_IN_ORDER
    if terms_contiguous(name_terms, query_terms):
        total += BONUS_CONTIGUOUS
    if phrase_match:
        total += BONUS_PHRASE

    return MatchScore(total, fuzzy)


def is_internal_query(query):
    return query.lstrip().startswith('/')


def parse_provider_filter(query, aliases, unaliased_providers):
    """
    Split a ':selector rest' query.

    Returns (provider, remaining_query, unknown). The selector is looked up in
    the alias map first, then among provider names that have no alias.
    """
    trimmed = query.lstrip()
    if not trimmed.startswith(':'):
        return None, query, False

    after = trimmed[1:]
    parts = after.split(None, 1)
    if not parts or after[:1].isspace():
        return None, query, False

    selector = parts[0].lower()
    remaining = parts[1] if len(parts) > 1 else ''

    if selector in aliases:
        return aliases[selector], remaining, False
    if selector in unaliased_providers:
        return selector, remaining, False
    return None, remaining, True


def rank_commands(entries, query, aliases, unaliased_providers, usage_boost=None):
    """Ordered indices into entries for the given query"""
    provider, query, unknown = parse_provider_filter(query, aliases, unaliased_providers)
    if unknown:
        return []

    boost = usage_boost or (lambda entry: 0)

    def allowed(entry):
        return provider is None or provider_name(entry).lower() == provider.lower()

    if not query.strip():
        ordered = [
            (index, boost(entry), entry.name.lower())
            for index, entry in enumerate(entries)
            if allowed(entry)
        ]
        ordered.sort(key=lambda item: (-item[1], item[2]))
        return [index for index, _, _ in ordered]

    query_terms = tokenize(query)
    scored = []
    for index, entry in enumerate(entries):
        if not allowed(entry):
            continue
        score = score_command(query, query_terms, entry)
        if score is None:
            continue
        scored.append((index, score.total + boost(entry), score.fuzzy, entry.name.lower()))

    scored.sort(key=lambda item: (-item[1], -item[2], item[3]))
    return [index for index, _, _, _ in scored]


def rank_internal(commands, query):
    """Ordered indices into the internal command list for a '/...' query"""
    normalized = query.lstrip().lstrip('/').strip().lower()
    scored = []

    for index, command in enumerate(commands):
        haystack = f"{command.name} {command.description}".lower()
        if not normalized:
            scored.append((index, INTERNAL_EMPTY_SCORE * WEIGHT_FUZZY, command.name))
            continue

        fuzzy = fuzzy_score(haystack, normalized)
        contains = normalized in haystack
        if fuzzy > 0 or contains:
            bonus = BONUS_INTERNAL_CONTAINS if contains else 0
            scored.append((index, fuzzy * WEIGHT_FUZZY + bonus, command.name))

    scored.sort(key=lambda item: (-item[1], item[2]))
    return [index for index, _, _ in scored]
