"""Rating filter compiler: the single source of the remote filter strings.

Every path that pushes restrictions (the loop, immediate assignment, bypass
cancellation) compiles through compile_filters(). Ratings keep their
first-appearance order; duplicates are dropped.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Union

RatingInput = Optional[Union[str, Iterable[str]]]

NOT_RATED_SPELLINGS = ("NR", "Not Rated")
MATURE_TV = "TV-MA"


@dataclass(frozen=True)
class RatingFilters:
    movie_filter: str
    tv_filter: str

    @property
    def is_empty(self) -> bool:
        return not self.movie_filter and not self.tv_filter


def split_ratings(value: RatingInput) -> list[str]:
    """Accept a comma-separated string or an iterable; return trimmed, non-empty tokens."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [token.strip() for token in value if token and token.strip()]


def normalize_rating(rating: str) -> list[str]:
    """The remote match is exact-string, so NR and Not Rated always travel together."""
    rating = rating.strip()
    if rating in NOT_RATED_SPELLINGS:
        return list(NOT_RATED_SPELLINGS)
    return [rating] if rating else []


def normalize_ratings(ratings: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for rating in ratings:
        for token in normalize_rating(rating):
            if token not in seen:
                seen.append(token)
    return seen


def _propagate(first: list[str], second: list[str], tag: str) -> tuple[list[str], list[str]]:
    """If ``tag`` is in either list, make sure it is in both."""
    if tag in first or tag in second:
        if tag not in first:
            first = first + [tag]
        if tag not in second:
            second = second + [tag]
    return first, second


def build_filter(allowed: list[str], blocked: list[str]) -> str:
    """Allowed wins outright; blocked is only consulted when allowed is empty."""
    if allowed:
        return "contentRating=" + ",".join(allowed)
    if blocked:
        return "contentRating!=" + ",".join(blocked)
    return ""


def compile_filters(
    movie_allowed: RatingInput,
    movie_blocked: RatingInput,
    tv_allowed: RatingInput,
    tv_blocked: RatingInput,
) -> RatingFilters:
    movie_allowed = normalize_ratings(split_ratings(movie_allowed))
    movie_blocked = normalize_ratings(split_ratings(movie_blocked))
    tv_allowed = normalize_ratings(split_ratings(tv_allowed))
    tv_blocked = normalize_ratings(split_ratings(tv_blocked))

    # TV-MA is tagged on items in both the movie and the TV libraries
    movie_blocked, tv_blocked = _propagate(movie_blocked, tv_blocked, MATURE_TV)
    movie_allowed, tv_allowed = _propagate(movie_allowed, tv_allowed, MATURE_TV)

    return RatingFilters(
        movie_filter=build_filter(movie_allowed, movie_blocked),
        tv_filter=build_filter(tv_allowed, tv_blocked),
    )


def compile_rule_filters(rule) -> RatingFilters:
    return compile_filters(
        rule.allowed_ratings,
        rule.blocked_ratings,
        rule.allowed_tv_ratings,
        rule.blocked_tv_ratings,
    )


def describe_restriction(rule) -> str:
    """Human-readable summary for the activity log, e.g. 'Movies blocked: R | TV blocked: TV-MA'."""
    parts = []
    movie_allowed = split_ratings(rule.allowed_ratings)
    movie_blocked = split_ratings(rule.blocked_ratings)
    tv_allowed = split_ratings(rule.allowed_tv_ratings)
    tv_blocked = split_ratings(rule.blocked_tv_ratings)
    if movie_allowed:
        parts.append(f"Movies allowed: {','.join(movie_allowed)}")
    elif movie_blocked:
        parts.append(f"Movies blocked: {','.join(movie_blocked)}")
    if tv_allowed:
        parts.append(f"TV allowed: {','.join(tv_allowed)}")
    elif tv_blocked:
        parts.append(f"TV blocked: {','.join(tv_blocked)}")
    return " | ".join(parts) or "No ratings configured"
