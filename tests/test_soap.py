import gzip
import xml.etree.ElementTree as ET

import httpx
import pytest

from conftest import SERVER_URL
from metaforce.core.adapters import soapxml
from metaforce.core.adapters.soap import SoapTransport
from metaforce.core.components import component
from metaforce.core.errors import AuthError, RemoteFault, TransportError
from metaforce.core.transport import METADATA_NS, PARTNER_NS, CallContext

SOAPENV = soapxml.SOAPENV_NS
XSI = soapxml.XSI_NS
LOGIN_URL = "https://login.salesforce.com/services/Soap/u/50.0"


def _envelope(body: str, ns: str = METADATA_NS) -> bytes:
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<soapenv:Envelope xmlns:soapenv="{SOAPENV}" xmlns:xsi="{XSI}" xmlns="{ns}">'
        f"<soapenv:Body>{body}</soapenv:Body></soapenv:Envelope>"
    ).encode("utf-8")


def _fault(code: str, message: str) -> bytes:
    return _envelope(
        "<soapenv:Fault>"
        f"<faultcode>sf:{code}</faultcode><faultstring>{message}</faultstring>"
        "</soapenv:Fault>"
    )


def _transport(handler, **kwargs) -> tuple[SoapTransport, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.Client(transport=httpx.MockTransport(record))
    kwargs.setdefault("gzip", False)
    return SoapTransport(client=client, **kwargs), seen


def test_login_posts_partner_envelope_without_session_header():
    body = _envelope(
        "<loginResponse><result>"
        f"<metadataServerUrl>{SERVER_URL}</metadataServerUrl>"
        "<sessionId>SID</sessionId><userId>005000000000001</userId>"
        "</result></loginResponse>",
        ns=PARTNER_NS,
    )
    transport, seen = _transport(lambda r: httpx.Response(200, content=body))

    result = transport.call(
        "login", CallContext(endpoint=LOGIN_URL), {"username": "u@x.com", "password": "pw"}
    )

    assert result == {
        "metadataServerUrl": SERVER_URL,
        "sessionId": "SID",
        "userId": "005000000000001",
    }
    request = seen[0]
    assert str(request.url) == LOGIN_URL
    assert request.headers["SOAPAction"] == '"login"'
    root = ET.fromstring(request.content)
    assert root.find(f"{{{SOAPENV}}}Header") is None
    login = root.find(f"{{{SOAPENV}}}Body/{{{PARTNER_NS}}}login")
    assert login.find(f"{{{PARTNER_NS}}}username").text == "u@x.com"


def test_metadata_call_tags_components_and_sends_session_header():
    body = _envelope(
        "<createMetadataResponse>"
        "<result><fullName>Invoice__c</fullName><success>true</success></result>"
        "<result><fullName>Invoice__c.Amount__c</fullName><success>true</success></result>"
        "</createMetadataResponse>"
    )
    transport, seen = _transport(lambda r: httpx.Response(200, content=body))
    payload = {
        "metadata": [
            component("CustomObject", "Invoice__c", label="Invoice").to_wire(),
            component("CustomField", "Invoice__c.Amount__c", type="Currency", required=False).to_wire(),
        ]
    }

    result = transport.call("createMetadata", CallContext(SERVER_URL, "SID"), payload)

    assert [r["fullName"] for r in result] == ["Invoice__c", "Invoice__c.Amount__c"]
    root = ET.fromstring(seen[0].content)
    session = root.find(f"{{{SOAPENV}}}Header/{{{METADATA_NS}}}SessionHeader/{{{METADATA_NS}}}sessionId")
    assert session.text == "SID"
    items = root.findall(f"{{{SOAPENV}}}Body/{{{METADATA_NS}}}createMetadata/{{{METADATA_NS}}}metadata")
    assert [i.get(f"{{{XSI}}}type") for i in items] == ["met:CustomObject", "met:CustomField"]
    assert items[1].find(f"{{{METADATA_NS}}}type").text == "Currency"
    assert items[1].find(f"{{{METADATA_NS}}}required").text == "false"


def test_auth_fault_raises_auth_error():
    transport, _ = _transport(
        lambda r: httpx.Response(500, content=_fault("INVALID_SESSION_ID", "Invalid Session ID"))
    )

    with pytest.raises(AuthError, match="INVALID_SESSION_ID") as info:
        transport.call("describeMetadata", CallContext(SERVER_URL, "SID"), {"asOfVersion": 50.0})

    assert info.value.operation == "describeMetadata"


def test_other_fault_raises_remote_fault():
    transport, _ = _transport(
        lambda r: httpx.Response(500, content=_fault("INVALID_TYPE", "No such type"))
    )

    with pytest.raises(RemoteFault) as info:
        transport.call("listMetadata", CallContext(SERVER_URL, "SID"), {})

    assert info.value.code == "INVALID_TYPE"
    assert info.value.message == "No such type"


def test_non_xml_error_page_raises_transport_error():
    transport, _ = _transport(lambda r: httpx.Response(502, content=b"<html>Bad Gateway"))

    with pytest.raises(TransportError, match="HTTP 502"):
        transport.call("describeMetadata", CallContext(SERVER_URL, "SID"), {})


def test_connection_failure_raises_transport_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport, _ = _transport(refuse)

    with pytest.raises(TransportError, match="connection refused") as info:
        transport.call("describeMetadata", CallContext(SERVER_URL, "SID"), {})

    assert isinstance(info.value.__cause__, httpx.ConnectError)


def test_gzip_compresses_the_request_body():
    body = _envelope("<describeMetadataResponse/>")
    transport, seen = _transport(lambda r: httpx.Response(200, content=body), gzip=True)

    assert transport.call("describeMetadata", CallContext(SERVER_URL, "SID"), {}) is None

    request = seen[0]
    assert request.headers["Content-Encoding"] == "gzip"
    root = ET.fromstring(gzip.decompress(request.content))
    assert root.find(f"{{{SOAPENV}}}Body/{{{METADATA_NS}}}describeMetadata") is not None


def test_compression_can_be_switched_off():
    body = _envelope("<describeMetadataResponse/>")
    transport, seen = _transport(lambda r: httpx.Response(200, content=body), gzip=True)

    transport.set_compression(False)
    transport.call("describeMetadata", CallContext(SERVER_URL, "SID"), {})

    assert "Content-Encoding" not in seen[0].headers
    ET.fromstring(seen[0].content)


def test_decode_handles_nil_repeated_and_typed_elements():
    content = _envelope(
        "<readMetadataResponse><result>"
        '<records xsi:type="CustomObject"><fullName>Invoice__c</fullName>'
        "<fields><fullName>Amount__c</fullName></fields>"
        "<fields><fullName>Due__c</fullName></fields>"
        '<description xsi:nil="true"/></records>'
        "</result></readMetadataResponse>"
    )

    result = soapxml.decode_response("readMetadata", content)

    record = result["records"]
    assert record["xsi:type"] == "CustomObject"
    assert record["fields"] == [{"fullName": "Amount__c"}, {"fullName": "Due__c"}]
    assert record["description"] is None


def test_redact_masks_secrets():
    envelope = soapxml.encode_envelope(
        "login", {"username": "u", "password": "hunter2"}, namespace=PARTNER_NS, session_id="SID"
    )

    masked = soapxml.redact(envelope)

    assert b"hunter2" not in masked
    assert b"SID<" not in masked
    assert b"***" in masked
