"""Predicate vocabulary - the closed set of relationship types.

Only canonical predicates are ever stored in ``links``. Each non-canonical
predicate exists to give a readable label when a canonical edge is traversed
backwards, which keeps one stored row per relationship instead of two.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType

from record_graph.errors import UnknownPredicateError


class PredicateType(StrEnum):
    """Semantic category of a predicate."""

    CREATION = "creation"
    CONTAINMENT = "containment"
    FORM = "form"
    DESCRIPTION = "description"
    REFERENCE = "reference"
    ASSOCIATION = "association"
    IDENTITY = "identity"


@dataclass(frozen=True)
class Predicate:
    """
    A relationship type.

    Attributes:
        slug: Unique identifier, e.g. "created_by"
        name: Human-readable label, e.g. "created by"
        type: Semantic category
        inverse_slug: Slug used when traversing the edge backwards
        canonical: Whether this direction is the stored one
        role: Optional role for creation predicates ("creator", "editor")
    """

    slug: str
    name: str
    type: PredicateType
    inverse_slug: str
    canonical: bool
    role: str | None = None

    @property
    def is_self_inverse(self) -> bool:
        return self.slug == self.inverse_slug


def _pair(
    slug: str,
    inverse_slug: str,
    type: PredicateType,
    role: str | None = None,
) -> tuple[Predicate, Predicate]:
    """Build a canonical predicate and its non-canonical inverse."""
    return (
        Predicate(slug, slug.replace("_", " "), type, inverse_slug, True, role),
        Predicate(inverse_slug, inverse_slug.replace("_", " "), type, slug, False, role),
    )


def _self_inverse(slug: str, type: PredicateType) -> tuple[Predicate]:
    return (Predicate(slug, slug.replace("_", " "), type, slug, True),)


_VOCABULARY: tuple[Predicate, ...] = (
    # Creation
    *_pair("created_by", "creator_of", PredicateType.CREATION, role="creator"),
    *_pair("via", "source_for", PredicateType.CREATION, role="referrer"),
    *_pair("edited_by", "editor_of", PredicateType.CREATION, role="editor"),
    *_pair("translated_by", "translator_of", PredicateType.CREATION, role="translator"),
    # Containment (child -> parent)
    *_pair("contained_by", "contains", PredicateType.CONTAINMENT),
    *_pair("quotes", "quoted_in", PredicateType.CONTAINMENT),
    # Form
    *_pair("has_format", "format_of", PredicateType.FORM),
    # Description
    *_pair("tagged_with", "tag_of", PredicateType.DESCRIPTION),
    # Reference
    *_pair("references", "referenced_by", PredicateType.REFERENCE),
    *_pair("about", "subject_of", PredicateType.REFERENCE),
    *_pair("responds_to", "responded_by", PredicateType.REFERENCE),
    # Association
    *_self_inverse("related_to", PredicateType.ASSOCIATION),
    *_pair("counters", "countered_by", PredicateType.ASSOCIATION),
    # Identity
    *_self_inverse("same_as", PredicateType.IDENTITY),
)

PREDICATES: Mapping[str, Predicate] = MappingProxyType({p.slug: p for p in _VOCABULARY})

CANONICAL_SLUGS: frozenset[str] = frozenset(p.slug for p in _VOCABULARY if p.canonical)


def get_predicate(slug: str) -> Predicate:
    """Look up a predicate by slug.

    Raises:
        UnknownPredicateError: If the slug is not in the vocabulary.
    """
    try:
        return PREDICATES[slug]
    except KeyError:
        raise UnknownPredicateError(slug) from None


def get_inverse(slug: str) -> Predicate:
    """Return the inverse predicate. Self-inverse predicates return themselves."""
    return get_predicate(get_predicate(slug).inverse_slug)


def is_canonical(slug: str) -> bool:
    return get_predicate(slug).canonical


def canonical_predicates() -> list[Predicate]:
    return [p for p in _VOCABULARY if p.canonical]


def canonicalize(source_id: int, target_id: int, slug: str) -> tuple[int, int, str]:
    """Rewrite a relationship into its stored direction.

    ``(a, b, "creator_of")`` becomes ``(b, a, "created_by")``; canonical
    triples are returned unchanged.
    """
    predicate = get_predicate(slug)
    if predicate.canonical:
        return source_id, target_id, slug
    inverse = get_predicate(predicate.inverse_slug)
    if not inverse.canonical:
        raise UnknownPredicateError(slug)
    return target_id, source_id, inverse.slug


def validate_vocabulary(predicates: Mapping[str, Predicate] = PREDICATES) -> list[str]:
    """Check vocabulary invariants. Returns a list of problems (empty when valid).

    Every inverse must resolve, inversion must be an involution, and each
    pair must have exactly one canonical side.
    """
    problems: list[str] = []
    for slug, predicate in predicates.items():
        inverse = predicates.get(predicate.inverse_slug)
        if inverse is None:
            problems.append(f"{slug}: inverse '{predicate.inverse_slug}' does not exist")
            continue
        if inverse.inverse_slug != slug:
            problems.append(f"{slug}: inverse of inverse is '{inverse.inverse_slug}'")
        if predicate.is_self_inverse:
            if not predicate.canonical:
                problems.append(f"{slug}: self-inverse predicate must be canonical")
        elif predicate.canonical == inverse.canonical:
            problems.append(f"{slug}: exactly one of '{slug}'/'{inverse.slug}' must be canonical")
    return problems
