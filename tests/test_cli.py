import base64
from functools import partial

import pytest
from typer.testing import CliRunner

import metaforce.cli.common.context as context_mod
from conftest import SERVER_URL, FakeTransport
from metaforce.cli.cli import app
from metaforce.cli.commands import deploy as deploy_cmd
from metaforce.cli.commands import retrieve as retrieve_cmd
from metaforce.cli.commands.retrieve import parse_members
from metaforce.cli.common.progress import wait_for_job_with_progress
from metaforce.core.client import MetadataClient

runner = CliRunner()


@pytest.fixture
def fake(monkeypatch):
    """Patch the CLI to build clients over a FakeTransport."""
    transport = FakeTransport()
    built = []

    def build_client(config):
        client = MetadataClient(transport)
        client.use_existing_session("SID", SERVER_URL)
        built.append(client)
        return client

    monkeypatch.setattr(context_mod, "build_client", build_client)
    no_sleep = partial(wait_for_job_with_progress, sleep=lambda s: None)
    monkeypatch.setattr(deploy_cmd, "wait_for_job_with_progress", no_sleep)
    monkeypatch.setattr(retrieve_cmd, "wait_for_job_with_progress", no_sleep)
    transport.built = built
    return transport


def test_help_does_not_connect(fake):
    result = runner.invoke(app, ["md", "--help"])

    assert result.exit_code == 0
    assert fake.built == []


def test_list_prints_components(fake):
    fake.responses["listMetadata"] = lambda payload: [
        {"fullName": "Invoice__c", "type": "CustomObject"},
        {"fullName": "Account", "type": "CustomObject"},
    ]

    result = runner.invoke(app, ["md", "list", "CustomObject"])

    assert result.exit_code == 0
    assert "Invoice__c" in result.stdout
    assert "Account" in result.stdout


def test_delete_accepts_types_outside_the_registry(fake):
    fake.responses["deleteMetadata"] = {"fullName": "Home", "success": "true"}

    result = runner.invoke(app, ["md", "delete", "FlexiPage", "Home", "--no-confirm"])

    assert result.exit_code == 0, result.stdout
    assert fake.calls[0][2] == {"type": "FlexiPage", "fullNames": ["Home"]}


def test_client_is_closed_when_the_command_ends(fake):
    fake.responses["describeMetadata"] = {"metadataObjects": []}

    result = runner.invoke(app, ["md", "describe"])

    assert result.exit_code == 0, result.stdout
    assert fake.closed is True


def test_empty_type_name_is_a_usage_error(fake):
    result = runner.invoke(app, ["md", "read", " ", "X"])

    assert result.exit_code == 2
    assert fake.calls == []


def test_delete_dry_run_makes_no_call(fake):
    result = runner.invoke(app, ["md", "delete", "CustomObject", "Foo__c", "--dry-run"])

    assert result.exit_code == 0
    assert fake.calls == []


def test_delete_exits_nonzero_when_an_element_fails(fake):
    fake.responses["deleteMetadata"] = lambda payload: [
        {"fullName": "Foo__c", "success": "true"},
        {
            "fullName": "Bar__c",
            "success": "false",
            "errors": {"statusCode": "INVALID_CROSS_REFERENCE_KEY", "message": "No such object"},
        },
    ]

    result = runner.invoke(app, ["md", "delete", "CustomObject", "Foo__c", "Bar__c", "--no-confirm"])

    assert result.exit_code == 1
    assert "INVALID_CROSS_REFERENCE_KEY" in result.stdout
    assert fake.operations() == ["deleteMetadata"]


def test_deploy_watch_succeeds(fake, tmp_path):
    archive = tmp_path / "package.zip"
    archive.write_bytes(b"PK\x03\x04package")
    fake.responses["deploy"] = {"id": "0Af001"}
    fake.responses["checkDeployStatus"] = [
        {"id": "0Af001", "status": "InProgress"},
        {"id": "0Af001", "status": "Succeeded"},
        {"id": "0Af001", "status": "Succeeded", "details": {}},
    ]

    result = runner.invoke(app, ["deploy", "start", str(archive), "--no-confirm", "--watch"])

    assert result.exit_code == 0, result.stdout
    assert "0Af001" in result.stdout
    assert fake.operations() == ["deploy", "checkDeployStatus", "checkDeployStatus", "checkDeployStatus"]
    assert fake.calls[-1][2]["includeDetails"] is True


def test_deploy_watch_failure_exits_one(fake, tmp_path):
    archive = tmp_path / "package.zip"
    archive.write_bytes(b"PK\x03\x04package")
    fake.responses["deploy"] = {"id": "0Af001"}
    fake.responses["checkDeployStatus"] = [
        {"id": "0Af001", "status": "Failed"},
        {
            "id": "0Af001",
            "status": "Failed",
            "details": {
                "componentFailures": {
                    "fullName": "Invoice__c",
                    "componentType": "CustomObject",
                    "problem": "Field Amount__c does not exist",
                }
            },
        },
    ]

    result = runner.invoke(app, ["deploy", "start", str(archive), "--no-confirm", "-w"])

    assert result.exit_code == 1
    assert "Amount__c does not exist" in result.stdout


def test_cancel_deploy(fake):
    fake.responses["cancelDeploy"] = {"id": "0Af001", "done": "false"}

    result = runner.invoke(app, ["deploy", "cancel", "0Af001", "--no-confirm"])

    assert result.exit_code == 0
    assert fake.calls[0][2] == {"asyncProcessId": "0Af001"}


def test_retrieve_watch_writes_archive(fake, tmp_path):
    destination = tmp_path / "out.zip"
    fake.responses["retrieve"] = {"id": "09S001"}
    fake.responses["checkRetrieveStatus"] = [
        {"id": "09S001", "status": "Succeeded"},
        {"id": "09S001", "status": "Succeeded", "zipFile": base64.b64encode(b"PKzip").decode()},
    ]

    result = runner.invoke(
        app,
        ["retrieve", "start", "-m", "CustomObject:Invoice__c", "-o", str(destination), "--watch"],
    )

    assert result.exit_code == 0, result.stdout
    assert destination.read_bytes() == b"PKzip"
    request = fake.calls[0][2]["retrieveRequest"]
    assert request["unpackaged"]["types"] == [{"members": ["Invoice__c"], "name": "CustomObject"}]


def test_retrieve_rejects_malformed_member(fake):
    result = runner.invoke(app, ["retrieve", "start", "-m", "Invoice__c"])

    assert result.exit_code == 2
    assert fake.calls == []


def test_parse_members_groups_by_type():
    assert parse_members(["CustomObject:A", "Layout:A-Layout", "CustomObject:B"]) == {
        "CustomObject": ("A", "B"),
        "Layout": ("A-Layout",),
    }
