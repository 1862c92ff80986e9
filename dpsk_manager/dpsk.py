"""
DPSK operations: list, create and modify
Workflows run against any record source with fetch_all/create_record/update_record
"""

import argparse
import json
import logging
from dataclasses import dataclass, field
from typing import List, Protocol, Tuple

from .utils.commands import Command, CommandParser, Connector, command_epilog, dispatch
from .utils.errors import (
    InvalidValue,
    MissingSetSeparator,
    NotFoundError,
    TransportError,
    UpdateBatchError,
    UsageError,
)
from .utils.filters import (
    EXACT_DEST,
    REGEXP_DEST,
    SET_DEST,
    FilterSet,
    UpdateSet,
    add_filter_arguments,
    add_update_arguments,
    apply_filters,
    build_filter_set,
    build_update_set,
    collect,
    describe,
    filter_flag_usage,
    update_flag_usage,
)
from .utils.logger import get_logger
from .utils.schema import DpskRecord

logger = get_logger(__name__)

SET_SEPARATOR = "set"

MIN_PASSPHRASE_LENGTH = 8
MAX_PASSPHRASE_LENGTH = 62
DEFAULT_PASSPHRASE_LENGTH = MAX_PASSPHRASE_LENGTH


class RecordSource(Protocol):
    def fetch_all(self) -> List[DpskRecord]: ...

    def create_record(self, wlansvc_id: int, user: str, length: int) -> None: ...

    def update_record(self, record_id: int, fields: UpdateSet) -> None: ...


@dataclass
class CreateResult:
    record: DpskRecord
    created: bool

    @property
    def passphrase(self) -> str:
        return self.record.passphrase


@dataclass
class ModifyResult:
    matched: List[DpskRecord] = field(default_factory=list)
    updated_ids: List[int] = field(default_factory=list)

    def summary(self) -> dict:
        return {"matched": len(self.matched), "updated": self.updated_ids}


# ============================================================================
# Workflows
# ============================================================================

def list_records(source: RecordSource, filters: FilterSet) -> List[DpskRecord]:
    """Fetch every DPSK and return those matching all filters."""
    records = source.fetch_all()
    matched = apply_filters(records, filters)
    logger.info(f"{len(matched)} of {len(records)} DPSKs match")
    return matched


def create_record(
    source: RecordSource,
    wlansvc_id: int,
    user: str,
    length: int = DEFAULT_PASSPHRASE_LENGTH,
) -> CreateResult:
    """
    Return the DPSK for a user on a WLAN, creating it when missing.

    Args:
        source: Record source to query and create through
        wlansvc_id: WLAN service id the DPSK belongs to
        user: DPSK owner
        length: Passphrase length for a new DPSK

    Raises:
        InvalidValue: bad WLAN id, user or length
        NotFoundError: the controller accepted the create but the DPSK is
            missing from the following listing
    """
    if wlansvc_id < 0:
        raise InvalidValue("wlansvc-id", str(wlansvc_id), "must not be negative")
    if not user:
        raise InvalidValue("user", user, "must not be empty")
    if not MIN_PASSPHRASE_LENGTH <= length <= MAX_PASSPHRASE_LENGTH:
        raise InvalidValue(
            "length", str(length),
            f"must be between {MIN_PASSPHRASE_LENGTH} and {MAX_PASSPHRASE_LENGTH}",
        )

    filters = build_filter_set({"wlansvc-id": str(wlansvc_id), "user": user})

    existing = apply_filters(source.fetch_all(), filters)
    if existing:
        logger.info(f"DPSK already exists for user {user} on WLAN {wlansvc_id} (id {existing[0].id})")
        return CreateResult(existing[0], created=False)

    logger.info(f"Creating DPSK for user {user} on WLAN {wlansvc_id}")
    source.create_record(wlansvc_id, user, length)

    created = apply_filters(source.fetch_all(), filters)
    if not created:
        raise NotFoundError(
            f"DPSK for user {user} on WLAN {wlansvc_id} was created but is missing from the DPSK list"
        )

    logger.info(f"Created DPSK id {created[0].id}")
    return CreateResult(created[0], created=True)


def modify_records(source: RecordSource, filters: FilterSet, updates: UpdateSet) -> ModifyResult:
    """
    Apply an update set to every DPSK matching the filters.

    Updates are sent one record at a time in list order. The first failure
    stops the batch, records updated before it stay updated. With debug
    logging the records are listed again afterwards and the matches logged.

    Raises:
        UpdateBatchError: an update failed, names the record and the ids
            already updated
    """
    logger.debug(f"Filtering by: {describe(filters)}")
    logger.debug(f"Setting fields: {describe(updates)}")

    result = ModifyResult(matched=apply_filters(source.fetch_all(), filters))
    logger.info(f"Found {len(result.matched)} matches")
    for record in result.matched:
        logger.debug(f"Match: {record.to_dict()}")

    for record in result.matched:
        try:
            source.update_record(record.id, updates)
        except TransportError as e:
            logger.error(f"Update of DPSK {record.id} failed after {len(result.updated_ids)} updates")
            raise UpdateBatchError(record.id, result.updated_ids, e) from e
        result.updated_ids.append(record.id)

    logger.info(f"Modified {len(result.updated_ids)} records")

    if logger.isEnabledFor(logging.DEBUG):
        after = apply_filters(source.fetch_all(), filters)
        logger.debug(f"{len(after)} records match after the update")
        for record in after:
            logger.debug(f"Match: {record.to_dict()}")

    return result


def split_modify_args(args: List[str]) -> Tuple[List[str], List[str]]:
    """Split modify arguments at the 'set' separator."""
    if SET_SEPARATOR not in args:
        raise MissingSetSeparator()
    pos = args.index(SET_SEPARATOR)
    return args[:pos], args[pos + 1:]


# ============================================================================
# Argument parsing
# ============================================================================

def filter_parser(prog: str, regexp: bool = True) -> CommandParser:
    parser = CommandParser(prog=prog, description="Select DPSKs by field value")
    add_filter_arguments(parser, regexp=regexp)
    return parser


def update_parser(prog: str) -> CommandParser:
    parser = CommandParser(prog=prog, description="New values for the selected DPSKs")
    add_update_arguments(parser)
    return parser


def parse_filters(args: List[str], prog: str = "dpsk list") -> FilterSet:
    """Parse filter flags and build a validated filter set."""
    namespace = filter_parser(prog).parse_args(args)
    try:
        return build_filter_set(collect(namespace, EXACT_DEST), collect(namespace, REGEXP_DEST))
    except UsageError as e:
        raise e.with_usage("available filter flags:\n" + filter_flag_usage())


def parse_updates(args: List[str], prog: str = "dpsk modify ... set") -> UpdateSet:
    namespace = update_parser(prog).parse_args(args)
    try:
        return build_update_set(collect(namespace, SET_DEST))
    except UsageError as e:
        raise e.with_usage("available set flags:\n" + update_flag_usage())


def parse_create(args: List[str]) -> argparse.Namespace:
    parser = CommandParser(prog="dpsk create", description="Create a DPSK, or show the existing one")
    parser.add_argument("--wlansvc-id", dest="wlansvc_id", type=int, required=True,
                        help="Ruckus WLAN service ID")
    parser.add_argument("--user", required=True, help="Username")
    parser.add_argument("--length", type=int, default=DEFAULT_PASSPHRASE_LENGTH,
                        help=f"Passphrase length ({MIN_PASSPHRASE_LENGTH}-{MAX_PASSPHRASE_LENGTH}, "
                             f"default {DEFAULT_PASSPHRASE_LENGTH})")
    namespace = parser.parse_args(args)
    if namespace.wlansvc_id < 0:
        parser.error(f"wlansvc-id is invalid: {namespace.wlansvc_id}")
    if not namespace.user:
        parser.error(f"username is invalid: {namespace.user!r}")
    return namespace


def parse_modify(args: List[str]) -> Tuple[FilterSet, UpdateSet]:
    """Parse 'filter flags set value flags' into a filter set and an update set."""
    try:
        filter_args, set_args = split_modify_args(args)
    except UsageError as e:
        raise e.with_usage(
            "usage: dpsk modify <filter flags> set <value flags>\n"
            "available filter flags:\n" + filter_flag_usage()
        )

    filters = parse_filters(filter_args, prog="dpsk modify")
    updates = parse_updates(set_args)
    return filters, updates


# ============================================================================
# Command handlers
# ============================================================================

def handle_list(args: List[str], connect: Connector) -> int:
    filters = parse_filters(args)

    client, session = connect()
    matched = list_records(client.dpsk(session), filters)
    print(json.dumps([record.to_dict() for record in matched], indent=2))
    return 0


def handle_create(args: List[str], connect: Connector) -> int:
    options = parse_create(args)

    client, session = connect()
    result = create_record(client.dpsk(session), options.wlansvc_id, options.user, options.length)
    print(result.passphrase)
    return 0


def handle_modify(args: List[str], connect: Connector) -> int:
    filters, updates = parse_modify(args)

    client, session = connect()
    result = modify_records(client.dpsk(session), filters, updates)
    print(json.dumps(result.summary(), indent=2))
    return 0


DPSK_COMMANDS = [
    Command("list", "List DPSKs", handle_list),
    Command("create", "Create DPSKs", handle_create),
    Command("modify", "Modify DPSKs", handle_modify),
]


def handle_dpsk(args: List[str], connect: Connector) -> int:
    if args and args[0] in ("-h", "--help"):
        print("usage: dpsk <operation> [flags]\n\n" + command_epilog(DPSK_COMMANDS))
        return 0
    return dispatch(DPSK_COMMANDS, args, connect, what="operation")
