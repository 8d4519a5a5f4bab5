import pytest

from metaforce.core.components import TYPE_KEY, component, is_registered
from metaforce.core.envelope import (
    MAX_BATCH_SIZE,
    build_names_request,
    build_save_request,
    parse_delete_results,
    parse_read_results,
    parse_save_results,
)
from metaforce.core.errors import TransportError, ValidationError


def test_save_request_keeps_heterogeneous_order_and_tags_each_element():
    batch = [
        component("CustomObject", "Invoice__c", label="Invoice"),
        component("CustomField", "Invoice__c.Amount__c", type="Currency"),
        component("Layout", "Invoice__c-Invoice Layout"),
    ]

    payload = build_save_request("createMetadata", batch)

    assert [m[TYPE_KEY] for m in payload["metadata"]] == ["CustomObject", "CustomField", "Layout"]
    assert [m["fullName"] for m in payload["metadata"]] == [c.full_name for c in batch]


def test_save_request_rejects_empty_batch():
    with pytest.raises(ValidationError, match="At least one"):
        build_save_request("createMetadata", [])


def test_save_request_rejects_oversized_batch_instead_of_truncating():
    batch = [component("Layout", f"L{i}") for i in range(MAX_BATCH_SIZE + 1)]

    with pytest.raises(ValidationError, match="At most"):
        build_save_request("updateMetadata", batch)


def test_save_request_rejects_non_components():
    with pytest.raises(ValidationError, match="not a MetadataComponent"):
        build_save_request("upsertMetadata", [{"fullName": "X"}])


def test_names_request_accepts_strings_and_matching_components():
    payload = build_names_request(
        "readMetadata",
        "CustomObject",
        ["Foo__c", component("CustomObject", "Bar__c")],
    )

    assert payload == {"type": "CustomObject", "fullNames": ["Foo__c", "Bar__c"]}


def test_names_request_rejects_mixed_types():
    with pytest.raises(ValidationError, match="one call per type"):
        build_names_request(
            "deleteMetadata",
            "CustomObject",
            ["Foo__c", component("Layout", "Foo__c-Layout")],
        )


@pytest.mark.parametrize("type_name", ["", "   "])
def test_names_request_requires_type_name(type_name: str):
    with pytest.raises(ValidationError, match="type name is required"):
        build_names_request("readMetadata", type_name, ["Foo__c"])


def test_names_request_rejects_empty_names():
    with pytest.raises(ValidationError, match="empty full name"):
        build_names_request("readMetadata", "CustomObject", ["Foo__c", ""])


def test_names_request_rejects_empty_batch():
    with pytest.raises(ValidationError):
        build_names_request("deleteMetadata", "CustomObject", [])


def test_save_results_follow_request_order_and_carry_faults():
    response = [
        {"fullName": "A__c", "success": "true", "created": "true"},
        {
            "fullName": "B__c",
            "success": "false",
            "errors": {
                "statusCode": "DUPLICATE_DEVELOPER_NAME",
                "message": "Already exists",
                "fields": ["fullName"],
            },
        },
    ]

    results = parse_save_results("upsertMetadata", ["A__c", "B__c"], response)

    assert [r.full_name for r in results] == ["A__c", "B__c"]
    assert results[0].success is True
    assert results[0].created is True
    assert results[0].fault is None
    assert results[1].success is False
    assert results[1].fault.code == "DUPLICATE_DEVELOPER_NAME"
    assert results[1].fault.full_name == "B__c"
    assert results[1].fault.operation == "upsertMetadata"
    assert results[1].fault.fields == ("fullName",)
    assert "B__c" in str(results[1].fault)


def test_save_results_take_identity_from_request_when_blank():
    results = parse_save_results("createMetadata", ["A__c"], {"success": "true"})

    assert results[0].full_name == "A__c"


def test_result_count_mismatch_is_a_protocol_error():
    with pytest.raises(TransportError, match="Expected 2 results, got 1"):
        parse_delete_results("deleteMetadata", ["A", "B"], [{"fullName": "A", "success": True}])


def test_failure_without_error_details_still_has_a_fault():
    results = parse_delete_results("deleteMetadata", ["A"], [{"success": "false"}])

    assert results[0].fault is not None
    assert results[0].fault.full_name == "A"


def test_read_results_skip_empty_records():
    response = {
        "records": [
            {TYPE_KEY: "CustomObject", "fullName": "Foo__c", "label": "Foo"},
            {TYPE_KEY: "CustomObject"},
        ]
    }

    components = parse_read_results("CustomObject", response)

    assert [c.full_name for c in components] == ["Foo__c"]
    assert components[0].attributes == {"label": "Foo"}


def test_read_results_accept_single_record():
    components = parse_read_results("Profile", {"records": {"fullName": "Admin"}})

    assert components[0].type_name == "Profile"


def test_names_request_accepts_types_outside_the_registry():
    payload = build_names_request("deleteMetadata", "Territory2", ["Global.EMEA"])

    assert payload == {"type": "Territory2", "fullNames": ["Global.EMEA"]}


def test_read_results_register_types_returned_by_the_service():
    records = {
        "records": [
            {TYPE_KEY: "FlexiPage", "fullName": "Home_Page", "masterLabel": "Home"},
        ]
    }

    found = parse_read_results("FlexiPage", records)

    assert found[0].type_name == "FlexiPage"
    assert found[0].attributes == {"masterLabel": "Home"}
    assert is_registered("FlexiPage")
