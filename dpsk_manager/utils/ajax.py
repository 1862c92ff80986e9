"""
Controller AJAX request bodies and response parsing
Builds the XML the web console sends and converts replies into DpskRecords
"""

import time
from typing import Any, Dict, List, Mapping, Optional

import xmltodict
from pydantic import ValidationError as ModelValidationError
from xml.parsers.expat import ExpatError

from .errors import TransportError
from .logger import get_logger
from .schema import DpskRecord

logger = get_logger(__name__)

# Upper bound the console sends along with batch generation requests
MAX_BATCH_NUM = 2048


def updater_stamp(component: str, now_ns: Optional[int] = None) -> str:
    """
    Updater attribute the console attaches to each request.

    Format is "<component>.<milliseconds>.<sub-millisecond digits>".
    """
    if now_ns is None:
        now_ns = time.time_ns()
    milliseconds = now_ns // 1_000_000
    fraction = (now_ns // 1_000) - milliseconds * 1000
    return f"{component}.{milliseconds}.{fraction:04d}"


def _render(document: Dict[str, Any]) -> str:
    return xmltodict.unparse(document, full_document=False, pretty=True)


def list_request(now_ns: Optional[int] = None) -> str:
    """Body for fetching every DPSK entry."""
    return _render({
        "ajax-request": {
            "@action": "getstat",
            "@comp": "stamgr",
            "@updater": updater_stamp("dpsk-list", now_ns),
            "dpsklist": None,
        }
    })


def create_request(wlansvc_id: int, user: str, length: int, now_ns: Optional[int] = None) -> str:
    """Body for generating one DPSK for a user on a WLAN."""
    return _render({
        "ajax-request": {
            "@action": "docmd",
            "@checkAbility": "2",
            "@updater": updater_stamp("system", now_ns),
            "@comp": "system",
            "xcmd": {
                "@cmd": "batch-dpsk",
                "@type": "gen",
                "@num": "1",
                "@max-num": str(MAX_BATCH_NUM),
                "@batch-dpsk": "",
                "@wlansvc-id": str(wlansvc_id),
                "@role-id": "",
                "@dpsk-len": str(length),
                "@dvlan-id": "",
                "@user": user,
            },
        }
    })


def update_request(record_id: int, fields: Mapping[str, str], now_ns: Optional[int] = None) -> str:
    """Body for a partial update of one DPSK entry."""
    entry = {
        "@id": str(record_id),
        "@name": f"dpsk{record_id}",
        "@IS_PARTIAL": "true",
    }
    for field, value in fields.items():
        entry[f"@{field}"] = value

    return _render({
        "ajax-request": {
            "@action": "updobj",
            "@updater": updater_stamp("dpsk-list", now_ns),
            "@comp": "dpsk-list",
            "dpsk": entry,
        }
    })


def _attributes(element: Any) -> Dict[str, str]:
    """Strip xmltodict's '@' prefix from an element's attributes."""
    if not isinstance(element, dict):
        return {}
    return {key[1:]: value for key, value in element.items() if key.startswith("@")}


def parse_list_response(xml_content: str) -> List[DpskRecord]:
    """
    Parse the controller's reply to a list request.

    Expected shape:
        <ajax-response>
          <response type="object" id="...">
            <apstamgr-stat>
              <dpsk-list>
                <dpsk id="1" user="alice" wlansvc-id="3" ... />
              </dpsk-list>
            </apstamgr-stat>
          </response>
        </ajax-response>

    Returns:
        Records in the order the controller sent them

    Raises:
        TransportError: malformed XML, unexpected root or invalid entries
    """
    try:
        doc = xmltodict.parse(xml_content)
    except ExpatError as e:
        raise TransportError(f"error parsing DPSK list XML: {e}") from e

    if not doc or "ajax-response" not in doc:
        raise TransportError("invalid DPSK list response: missing 'ajax-response' element")

    response = doc["ajax-response"] or {}
    stat = (response.get("response") or {}).get("apstamgr-stat") or {}
    entries = (stat.get("dpsk-list") or {}).get("dpsk", [])

    # A single entry comes back as a dict
    if isinstance(entries, dict):
        entries = [entries]

    records = []
    seen = set()
    for entry in entries:
        try:
            record = DpskRecord.model_validate(_attributes(entry))
        except ModelValidationError as e:
            raise TransportError(f"invalid DPSK entry in list response: {e}") from e

        if record.id in seen:
            raise TransportError(f"duplicate DPSK id {record.id} in list response")
        seen.add(record.id)
        records.append(record)

    logger.debug(f"Parsed {len(records)} DPSK entries")
    return records
