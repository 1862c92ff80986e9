"""
DPSK record filtering
Predicates, filter/update set construction, the query engine and
the command line flags generated from the record schema
"""

import argparse
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Pattern

from .errors import (
    DuplicateFilter,
    InvalidPattern,
    NoFiltersSpecified,
    NoPropertiesSpecified,
    ReadOnlyField,
)
from .logger import get_logger
from .schema import EXACT_HINTS, FIELDS, REGEXP_HINTS, DpskRecord, FieldSpec, resolve, settable_fields, stringify
from .validators import normalize_value

logger = get_logger(__name__)

REGEXP_PREFIX = "regexp-"

EXACT_DEST = "exact:"
REGEXP_DEST = "regexp:"
SET_DEST = "set:"


# ============================================================================
# Predicates
# ============================================================================

class PredicateKind(str, Enum):
    EXACT = "exact"
    REGEXP = "regexp"


@dataclass(frozen=True)
class Predicate:
    """
    Single-field test against a record's string form.

    EXACT holds a value already normalized for the field's type class and
    compares case-sensitively. REGEXP holds a compiled pattern searched
    anywhere in the candidate.
    """

    field: str
    kind: PredicateKind
    value: str
    pattern: Optional[Pattern] = None

    @classmethod
    def exact(cls, field: str, raw: str) -> "Predicate":
        return cls(field, PredicateKind.EXACT, normalize_value(field, raw))

    @classmethod
    def regexp(cls, field: str, raw: str) -> "Predicate":
        resolve(field)
        try:
            compiled = re.compile(raw)
        except re.error as e:
            raise InvalidPattern(field, raw, str(e)) from None
        return cls(field, PredicateKind.REGEXP, raw, compiled)

    def test(self, candidate: str) -> bool:
        if self.kind is PredicateKind.EXACT:
            return candidate == self.value
        return self.pattern.search(candidate) is not None

    def __str__(self) -> str:
        if self.kind is PredicateKind.REGEXP:
            return f"regexp: {self.value}"
        return self.value


FilterSet = Dict[str, Predicate]
UpdateSet = Dict[str, str]


# ============================================================================
# Filter and update sets
# ============================================================================

def _present(raw: Mapping[str, Optional[str]]) -> Iterable:
    """Entries with a non-empty value. A missing flag is not an error."""
    for field, value in raw.items():
        if value is None or value == "":
            continue
        yield field, value


def build_filter_set(
    raw_exact: Mapping[str, Optional[str]],
    raw_regexp: Optional[Mapping[str, Optional[str]]] = None,
) -> FilterSet:
    """
    Build validated predicates from raw exact and regexp values.

    Args:
        raw_exact: Field identifier -> raw exact value (None/"" ignored)
        raw_regexp: Field identifier -> raw pattern (None/"" ignored)

    Returns:
        Field identifier -> Predicate

    Raises:
        UnknownField: an identifier has no schema entry
        InvalidTimestamp / InvalidMAC: an exact value does not normalize
        InvalidPattern: a pattern does not compile
        DuplicateFilter: a field has both an exact and a regexp value
        NoFiltersSpecified: nothing is left to filter on
    """
    exact = {field: Predicate.exact(field, value) for field, value in _present(raw_exact)}
    regexp = {field: Predicate.regexp(field, value) for field, value in _present(raw_regexp or {})}

    filters: FilterSet = dict(exact)
    for field, predicate in regexp.items():
        if field in filters:
            raise DuplicateFilter(field)
        filters[field] = predicate

    if not filters:
        raise NoFiltersSpecified()

    return filters


def build_update_set(raw: Mapping[str, Optional[str]]) -> UpdateSet:
    """
    Build normalized new values for the modify operation.

    Raises:
        UnknownField: an identifier has no schema entry
        ReadOnlyField: the field is assigned by the controller
        InvalidTimestamp / InvalidMAC: a value does not normalize
        NoPropertiesSpecified: no values given
    """
    updates: UpdateSet = {}
    for field, value in _present(raw):
        if not resolve(field).settable:
            raise ReadOnlyField(field)
        updates[field] = normalize_value(field, value)

    if not updates:
        raise NoPropertiesSpecified()

    return updates


# ============================================================================
# Query engine
# ============================================================================

def matches(record: DpskRecord, filters: FilterSet) -> bool:
    """True if every predicate accepts the record's field."""
    return all(predicate.test(stringify(record, field)) for field, predicate in filters.items())


def apply_filters(records: Iterable[DpskRecord], filters: FilterSet) -> List[DpskRecord]:
    """
    Select the records accepted by every predicate, keeping input order.

    Raises:
        NoFiltersSpecified: filters is empty, there is no select-all
    """
    if not filters:
        raise NoFiltersSpecified()

    selected = [record for record in records if matches(record, filters)]
    logger.debug(f"Filter {describe(filters)} matched {len(selected)} records")
    return selected


def describe(values: Mapping[str, object]) -> str:
    return ", ".join(f"{field}={value}" for field, value in values.items()) or "(none)"


# ============================================================================
# Command line flags generated from the schema
# ============================================================================

def _exact_help(spec: FieldSpec, verb: str = "filter by") -> str:
    hint = EXACT_HINTS.get(spec.type_class)
    return f"{verb} {spec.identifier}, {hint}" if hint else f"{verb} {spec.identifier}"


def _regexp_help(spec: FieldSpec) -> str:
    hint = REGEXP_HINTS.get(spec.type_class)
    text = f"filter by {spec.identifier} matching a regular expression"
    return f"{text}, {hint}" if hint else text


def add_filter_arguments(parser: argparse.ArgumentParser, regexp: bool = True) -> None:
    """
    Add one exact flag per schema field and, optionally, one regexp flag.

    Exact flags are added in their own group before the regexp group so
    help output lists them first.
    """
    exact_group = parser.add_argument_group("field filters")
    for spec in FIELDS:
        exact_group.add_argument(
            f"--{spec.identifier}",
            dest=EXACT_DEST + spec.identifier,
            metavar="VALUE",
            help=_exact_help(spec),
        )

    if not regexp:
        return

    regexp_group = parser.add_argument_group("regexp filters")
    for spec in FIELDS:
        regexp_group.add_argument(
            f"--{REGEXP_PREFIX}{spec.identifier}",
            dest=REGEXP_DEST + spec.identifier,
            metavar="PATTERN",
            help=_regexp_help(spec),
        )


def add_update_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("values")
    for spec in settable_fields():
        group.add_argument(
            f"--{spec.identifier}",
            dest=SET_DEST + spec.identifier,
            metavar="VALUE",
            help=_exact_help(spec, verb="set"),
        )


def collect(namespace: argparse.Namespace, prefix: str) -> Dict[str, Optional[str]]:
    """Field identifier -> raw value for every generated flag with the given dest prefix."""
    return {
        dest[len(prefix):]: value
        for dest, value in vars(namespace).items()
        if dest.startswith(prefix)
    }


def filter_flag_usage(regexp: bool = True) -> str:
    """Flag summary for error output, plain flags before regexp flags."""
    plain = [f"  --{spec.identifier}: {_exact_help(spec)}" for spec in FIELDS]
    regexps = [f"  --{REGEXP_PREFIX}{spec.identifier}: {_regexp_help(spec)}" for spec in FIELDS]
    return "\n".join(plain + (regexps if regexp else []))


def update_flag_usage() -> str:
    return "\n".join(
        f"  --{spec.identifier}: {_exact_help(spec, verb='set')}"
        for spec in settable_fields()
    )
