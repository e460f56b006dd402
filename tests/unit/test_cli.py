import asyncio

import pytest
from typer.testing import CliRunner

import fieldflow.persistence as persistence
from fieldflow.cli import app
from fieldflow.persistence import InMemoryRecordStore, WorkflowRepository
from tests.fixtures.workflows import TENANT, action, chain, make_workflow, trigger

WORKFLOW_YAML = """
id: wf-yaml
name: Quote approved
tenant_id: tenant-1
trigger_type: quote_approved
nodes:
  - node_id: trigger
    node_type: trigger
  - node_id: project
    node_type: action
    action_type: create_project
connections:
  - source_node_id: trigger
    target_node_id: project
"""


@pytest.fixture
def cli_store(monkeypatch, tmp_path):
    monkeypatch.setenv("FIELDFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    store = InMemoryRecordStore()
    monkeypatch.setattr(persistence, "_store_instance", store)
    return store


def test_execute_runs_workflow_and_shows_log(cli_store):
    repo = WorkflowRepository(cli_store)
    asyncio.run(
        repo.save_workflow(
            make_workflow([trigger(), action("p", "create_project")], chain("trigger", "p"))
        )
    )

    runner = CliRunner()
    result = runner.invoke(
        app, ["execute", "wf-1", "--tenant-id", TENANT, "--data", '{"customerId": "c1"}']
    )
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert ": completed" in result.stdout
    assert "- trigger: success" in result.stdout
    assert "- p: success" in result.stdout
    assert cli_store.table("projects")[0]["customer_id"] == "c1"


def test_execute_unknown_workflow_fails(cli_store):
    runner = CliRunner()
    result = runner.invoke(app, ["execute", "missing", "--tenant-id", TENANT])
    assert result.exit_code == 1
    assert "Workflow not found or inactive: missing" in result.stdout


def test_execute_rejects_invalid_data(cli_store):
    runner = CliRunner()
    result = runner.invoke(app, ["execute", "wf-1", "--tenant-id", TENANT, "--data", "[1]"])
    assert result.exit_code == 1
    assert "--data must be a JSON object" in result.stdout


def test_workflow_import_and_validate(cli_store, tmp_path):
    path = tmp_path / "workflow.yaml"
    path.write_text(WORKFLOW_YAML)

    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "validate", str(path)])
    assert result.exit_code == 0
    assert "Workflow is valid" in result.stdout

    result = runner.invoke(app, ["workflow", "import", str(path)])
    assert result.exit_code == 0
    assert "Imported workflow wf-yaml (2 nodes)" in result.stdout
    loaded = asyncio.run(WorkflowRepository(cli_store).load_active_workflow("wf-yaml"))
    assert loaded.trigger_type == "quote_approved"


def test_workflow_validate_reports_errors(cli_store, tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("id: broken\nnodes:\n  - node_id: a\n    node_type: action\n    action_type: teleport\n")

    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "validate", str(path)])
    assert result.exit_code == 1
    assert "Workflow must have at least one trigger node" in result.stdout

    result = runner.invoke(app, ["workflow", "validate", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1
    assert "File not found" in result.stdout


def test_trigger_and_execution_commands(cli_store):
    repo = WorkflowRepository(cli_store)
    asyncio.run(repo.save_workflow(make_workflow([trigger(), action("p", "create_project")], chain("trigger", "p"))))

    runner = CliRunner()
    result = runner.invoke(app, ["trigger", "quote_approved", "--tenant-id", TENANT])
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert ": completed" in result.stdout

    result = runner.invoke(app, ["trigger", "ticket_created", "--tenant-id", TENANT])
    assert "No active workflows for ticket_created" in result.stdout

    result = runner.invoke(app, ["execution", "list", "--workflow-id", "wf-1"])
    assert result.exit_code == 0
    assert "wf-1\tcompleted" in result.stdout

    result_missing = runner.invoke(app, ["execution", "show", "missing-id"])
    assert result_missing.exit_code == 1
    assert "Execution not found" in result_missing.stdout
