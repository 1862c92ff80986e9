"""
Controller Transport Test Suite
Tests ajax.py, client.py and config.py with a mocked HTTP session
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests
import xmltodict

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from dpsk_manager.utils.ajax import (
    create_request,
    list_request,
    parse_list_response,
    update_request,
    updater_stamp,
)
from dpsk_manager.utils.client import (
    BACKUP_PATH,
    CMDSTAT_PATH,
    CONF_PATH,
    LOGIN_PATH,
    ControllerClient,
    ControllerSession,
)
from dpsk_manager.utils.config import ControllerConfig, load_config
from dpsk_manager.utils.errors import (
    DpskManagerError,
    LoginError,
    OutputError,
    TransportError,
    UsageError,
)
from dpsk_manager.utils.logger import get_logger

logger = get_logger("test_client")

SERVER = "https://unleashed.example.net"

LIST_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<ajax-response>
  <response type="object" id="dpsk-list.1705312800000.0123">
    <apstamgr-stat>
      <dpsk-list>
        <dpsk id="1" role-id="" mac="aa:bb:cc:dd:ee:ff" wlansvc-id="3" dvlan-id="" user="alice"
              last-rekey="1705312800" next-rekey="0" expire="0" start-point="0"
              passphrase="secret-one" ip-addr="" cur-shared-num="0" usage="" />
        <dpsk id="2" mac="00:00:00:00:00:00" wlansvc-id="3" dvlan-id="20" user="bob"
              passphrase="secret-two" />
      </dpsk-list>
    </apstamgr-stat>
  </response>
</ajax-response>
"""

SINGLE_RESPONSE = """<ajax-response><response type="object"><apstamgr-stat><dpsk-list>
<dpsk id="9" wlansvc-id="1" user="carol" passphrase="p9" />
</dpsk-list></apstamgr-stat></response></ajax-response>"""

EMPTY_RESPONSE = """<ajax-response><response type="object"><apstamgr-stat><dpsk-list/>
</apstamgr-stat></response></ajax-response>"""


def make_response(status_code=200, text="", headers=None, cookies=None, chunks=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.headers = headers or {}
    response.cookies.get_dict.return_value = cookies or {}
    response.iter_content.return_value = chunks or []
    return response


def make_client(*responses):
    http = MagicMock()
    http.request.side_effect = list(responses)
    config = ControllerConfig(server=SERVER, password="secret")
    return ControllerClient(config, http=http), http


def session():
    return ControllerSession(server=SERVER, csrf_token="tok123", cookies={"-ejs-session-": "abc"})


# ============================================================================
# ajax.py Tests
# ============================================================================

def test_updater_stamp():
    """Test the updater attribute format."""
    logger.info("=" * 60)
    logger.info("Test: updater_stamp")
    logger.info("=" * 60)

    assert updater_stamp("dpsk-list", 1705312800123456789) == "dpsk-list.1705312800123.0456"
    assert updater_stamp("system", 1_000_000_000) == "system.1000.0000"
    logger.info("[PASS] Updater stamp format")


def test_request_bodies():
    """Test XML bodies for list, create and update."""
    logger.info("=" * 60)
    logger.info("Test: request bodies")
    logger.info("=" * 60)

    body = xmltodict.parse(list_request(now_ns=1_000_000_000))["ajax-request"]
    assert body["@action"] == "getstat"
    assert body["@comp"] == "stamgr"
    assert body["@updater"] == "dpsk-list.1000.0000"
    assert "dpsklist" in body
    logger.info("[PASS] List body")

    xcmd = xmltodict.parse(create_request(3, "alice", 12))["ajax-request"]["xcmd"]
    assert xcmd["@cmd"] == "batch-dpsk"
    assert xcmd["@type"] == "gen"
    assert xcmd["@num"] == "1"
    assert xcmd["@wlansvc-id"] == "3"
    assert xcmd["@user"] == "alice"
    assert xcmd["@dpsk-len"] == "12"
    logger.info("[PASS] Create body")

    request = xmltodict.parse(update_request(5, {"passphrase": "it's <new>", "user": "bob"}))["ajax-request"]
    assert request["@action"] == "updobj"
    assert request["@comp"] == "dpsk-list"
    entry = request["dpsk"]
    assert entry["@id"] == "5"
    assert entry["@name"] == "dpsk5"
    assert entry["@IS_PARTIAL"] == "true"
    assert entry["@passphrase"] == "it's <new>", "Attribute values must survive escaping"
    assert entry["@user"] == "bob"
    logger.info("[PASS] Update body")


def test_parse_list_response():
    """Test decoding DPSK list replies."""
    logger.info("=" * 60)
    logger.info("Test: parse_list_response")
    logger.info("=" * 60)

    records = parse_list_response(LIST_RESPONSE)
    assert [r.id for r in records] == [1, 2]
    assert records[0].user == "alice"
    assert records[0].dvlan_id == 0
    assert records[0].passphrase == "secret-one"
    assert records[1].dvlan_id == 20
    assert records[1].last_rekey == ""
    logger.info("[PASS] Multiple entries")

    records = parse_list_response(SINGLE_RESPONSE)
    assert len(records) == 1 and records[0].user == "carol"
    logger.info("[PASS] Single entry")

    assert parse_list_response(EMPTY_RESPONSE) == []
    logger.info("[PASS] Empty list")

    bad_inputs = [
        "<html><body>login</body></html>",
        "not xml at all <",
        LIST_RESPONSE.replace('id="2"', 'id="1"'),
        LIST_RESPONSE.replace('wlansvc-id="3" dvlan-id="20"', 'wlansvc-id="three" dvlan-id="20"'),
    ]
    for text in bad_inputs:
        with pytest.raises(TransportError):
            parse_list_response(text)
    logger.info("[PASS] Malformed replies rejected")


# ============================================================================
# client.py Tests
# ============================================================================

def test_login_success():
    """Test that login captures the CSRF token and cookies."""
    logger.info("=" * 60)
    logger.info("Test: login success")
    logger.info("=" * 60)

    client, http = make_client(make_response(
        status_code=302,
        headers={"HTTP_X_CSRF_TOKEN": "tok123"},
        cookies={"-ejs-session-": "abc"},
    ))
    result = client.login()

    assert result == ControllerSession(SERVER, "tok123", {"-ejs-session-": "abc"})
    method, url = http.request.call_args.args
    kwargs = http.request.call_args.kwargs
    assert method == "POST"
    assert url == SERVER + LOGIN_PATH
    assert kwargs["data"] == {"username": "dpsk", "password": "secret", "ok": "Log In"}
    assert kwargs["allow_redirects"] is False
    http.cookies.clear.assert_called()
    logger.info("[PASS] Session built from login reply")


def test_login_rejected():
    """Test that a reply without CSRF token is a login failure."""
    logger.info("=" * 60)
    logger.info("Test: login rejected")
    logger.info("=" * 60)

    client, _ = make_client(make_response(status_code=200, text="<html>bad login</html>"))
    with pytest.raises(LoginError) as excinfo:
        client.login()
    assert "200" in str(excinfo.value)
    logger.info("[PASS] Missing token raises LoginError")

    client, http = make_client()
    http.request.side_effect = requests.exceptions.ConnectionError("refused")
    with pytest.raises(TransportError):
        client.login()
    logger.info("[PASS] Connection failure raises TransportError")


def test_dpsk_service_calls():
    """Test list, create and update requests."""
    logger.info("=" * 60)
    logger.info("Test: DpskService")
    logger.info("=" * 60)

    client, http = make_client(
        make_response(text=LIST_RESPONSE),
        make_response(),
        make_response(),
    )
    service = client.dpsk(session())

    records = service.fetch_all()
    assert len(records) == 2
    method, url = http.request.call_args.args
    kwargs = http.request.call_args.kwargs
    assert (method, url) == ("POST", SERVER + CMDSTAT_PATH)
    assert kwargs["headers"] == {"X-CSRF-Token": "tok123", "Content-Type": "text/xml"}
    assert kwargs["cookies"] == {"-ejs-session-": "abc"}
    assert kwargs["timeout"] == 30.0
    logger.info("[PASS] fetch_all")

    service.create_record(3, "alice", 12)
    assert http.request.call_args.args[1] == SERVER + CMDSTAT_PATH
    assert b"batch-dpsk" in http.request.call_args.kwargs["data"]
    logger.info("[PASS] create_record")

    service.update_record(1, {"passphrase": "newpass"})
    assert http.request.call_args.args[1] == SERVER + CONF_PATH
    assert b'passphrase="newpass"' in http.request.call_args.kwargs["data"]
    logger.info("[PASS] update_record")


def test_non_200_is_transport_error():
    """Test status code checks."""
    logger.info("=" * 60)
    logger.info("Test: non-200 replies")
    logger.info("=" * 60)

    client, _ = make_client(make_response(status_code=500))
    with pytest.raises(TransportError) as excinfo:
        client.dpsk(session()).update_record(1, {"user": "x"})
    assert "500" in str(excinfo.value)
    logger.info("[PASS] Non-200 update rejected")


def test_download_backup(tmp_path):
    """Test streaming the backup to disk byte for byte."""
    logger.info("=" * 60)
    logger.info("Test: download_backup")
    logger.info("=" * 60)

    payload = [b"\x00\x01binary", b"", b"\xffrest"]
    client, http = make_client(make_response(chunks=payload))
    output = tmp_path / "controller.bak"

    written = client.download_backup(session(), output)

    assert output.read_bytes() == b"".join(payload)
    assert written == len(b"".join(payload))
    kwargs = http.request.call_args.kwargs
    assert http.request.call_args.args == ("GET", SERVER + BACKUP_PATH)
    assert kwargs["headers"]["Accept"] == "application/octet-stream"
    assert kwargs["stream"] is True
    logger.info("[PASS] Backup written")

    client, _ = make_client(make_response(status_code=403))
    with pytest.raises(TransportError):
        client.download_backup(session(), tmp_path / "denied.bak")
    assert not (tmp_path / "denied.bak").exists()
    logger.info("[PASS] Failed backup leaves no file")


def test_download_backup_keeps_previous_file(tmp_path):
    """Test that an interrupted download leaves the earlier backup in place."""
    logger.info("=" * 60)
    logger.info("Test: download_backup interrupted")
    logger.info("=" * 60)

    def broken_stream():
        yield b"partial"
        raise requests.exceptions.ChunkedEncodingError("connection broken")

    output = tmp_path / "file.bak"
    output.write_bytes(b"previous backup")
    response = make_response()
    response.iter_content.return_value = broken_stream()
    client, _ = make_client(response)

    with pytest.raises(TransportError):
        client.download_backup(session(), output)

    assert output.read_bytes() == b"previous backup"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["file.bak"]
    logger.info("[PASS] Previous backup kept, partial file removed")


def test_download_backup_unwritable_output(tmp_path):
    """Test that local write failures are reported as OutputError."""
    logger.info("=" * 60)
    logger.info("Test: download_backup unwritable output")
    logger.info("=" * 60)

    target = tmp_path / "backups"
    target.mkdir()
    client, _ = make_client(make_response(chunks=[b"data"]))

    with pytest.raises(OutputError) as excinfo:
        client.download_backup(session(), target)

    assert isinstance(excinfo.value, DpskManagerError)
    assert target.is_dir()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["backups"]
    logger.info("[PASS] Directory output rejected")


# ============================================================================
# config.py Tests
# ============================================================================

def test_load_config(monkeypatch, tmp_path):
    """Test layering of flags, environment and defaults."""
    logger.info("=" * 60)
    logger.info("Test: load_config")
    logger.info("=" * 60)

    for name in ["RUCKUS_SERVER", "RUCKUS_USERNAME", "RUCKUS_PASSWORD", "RUCKUS_CACERT", "RUCKUS_TIMEOUT"]:
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(UsageError) as excinfo:
        load_config()
    assert "password is required" in str(excinfo.value)
    logger.info("[PASS] Missing password rejected")

    monkeypatch.setenv("RUCKUS_SERVER", "unleashed.local/")
    monkeypatch.setenv("RUCKUS_PASSWORD", "envpass")
    config = load_config()
    assert config.server == "https://unleashed.local"
    assert config.username == "dpsk"
    assert config.password == "envpass"
    assert config.tls_verify is True
    logger.info("[PASS] Environment values used")

    config = load_config(server="http://10.0.0.1", password="flagpass", insecure=True, timeout=5)
    assert config.server == "http://10.0.0.1"
    assert config.password == "flagpass"
    assert config.tls_verify is False
    assert config.timeout == 5
    logger.info("[PASS] Flags override environment")

    cert = tmp_path / "ca.pem"
    cert.write_text("-----BEGIN CERTIFICATE-----\n")
    assert load_config(cacert=str(cert)).tls_verify == str(cert)
    with pytest.raises(UsageError):
        load_config(cacert=str(tmp_path / "missing.pem"))
    with pytest.raises(UsageError):
        load_config(timeout=0)
    logger.info("[PASS] CA certificate and timeout validated")


# ============================================================================
# Test Runner
# ============================================================================

def run_all_client_tests():
    tests = [
        test_updater_stamp,
        test_request_bodies,
        test_parse_list_response,
        test_login_success,
        test_login_rejected,
        test_dpsk_service_calls,
        test_non_200_is_transport_error,
    ]
    failed = 0
    for test in tests:
        try:
            test()
        except Exception as e:
            failed += 1
            logger.error(f"[FAIL] {test.__name__}: {e}")
    logger.info(f"TOTAL: {len(tests) - failed}/{len(tests)} tests passed")
    return failed == 0


if __name__ == "__main__":
    sys.exit(0 if run_all_client_tests() else 1)
