"""CLI tests using typer's CliRunner against a file-based SQLite database."""

import json
import logging

import pytest
from typer.testing import CliRunner

from shiptrack.cli.main import app
from shiptrack.db.connection import close_db

runner = CliRunner()

HEADER = "Order ID,Tracking Details,Status Updates,Delivery Location,ETA\n"
ROWS = (
    'ORD-1,TRK-001-99,"picked_up Warehouse 1/2/2024 | delivered Door 3/2/2024",'
    "1 Main St,4/2/2024\n"
    'ORD-2,TRK-002-99,"intransit Hub 2/2/2024",2 Main St,\n'
)


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    close_db()


@pytest.fixture
def cli(db_url):
    """Invoke the app against a fresh database."""

    def _invoke(*args: str):
        return runner.invoke(app, ["--db", db_url, *args])

    assert _invoke("init-db").exit_code == 0
    return _invoke


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "export.csv"
    path.write_text(HEADER + ROWS, encoding="utf-8")
    return path


def test_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "import" in result.stdout


def test_import_csv_json(cli, csv_file):
    result = cli("import", "csv", str(csv_file), "--json")
    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["rowsProcessed"] == 2
    assert report["succeeded"] == 2
    assert report["results"][0] == {
        "key": "ORD-1",
        "success": True,
        "updatedStatusCount": 2,
        "order_status": "delivered",
    }


def test_import_csv_table(cli, csv_file):
    result = cli("import", "csv", str(csv_file))
    assert result.exit_code == 0, result.output
    assert "2 succeeded" in result.stdout


def test_import_empty_csv(cli, tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text(HEADER, encoding="utf-8")
    result = cli("import", "csv", str(path))
    assert result.exit_code == 1
    assert "E-1002" in result.stdout


def test_import_csv_missing_column(cli, tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("Order ID\nORD-1\n", encoding="utf-8")
    result = cli("import", "csv", str(path))
    assert result.exit_code == 1
    assert "E-1003" in result.stdout


def test_track(cli, csv_file):
    cli("import", "csv", str(csv_file))
    result = cli("track", "trk-001-99", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["orderId"] == "ORD-1"
    assert data["matchedBy"] == "digits"
    assert [u["status"] for u in data["statusUpdates"]] == ["delivered", "picked_up"]


def test_track_not_found(cli):
    result = cli("track", "NOPE")
    assert result.exit_code == 1
    assert "E-3001" in result.stdout


def test_import_status_appends(cli, csv_file, tmp_path):
    cli("import", "csv", str(csv_file))
    path = tmp_path / "status.csv"
    path.write_text(
        "Tracking Details,Status Updates\n"
        'TRK-002-99,"out_for_delivery Van 5/2/2024"\n'
        "NOPE,delivered\n",
        encoding="utf-8",
    )
    result = cli("import", "status", str(path), "--json")
    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert (report["succeeded"], report["failed"]) == (1, 1)
    assert report["results"][0]["updatedStatusCount"] == 1


def test_import_updates_skips_missing(cli, csv_file, tmp_path):
    cli("import", "csv", str(csv_file))
    path = tmp_path / "updates.json"
    path.write_text(json.dumps({
        "updates": [
            {"shipmentId": 1, "order_status": "cancelled"},
            {"shipmentId": 999, "order_status": "delivered"},
        ]
    }))
    result = cli("import", "updates", str(path), "--json")
    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["applied"] == 1
    assert report["skippedShipmentIds"] == [999]


def test_import_legacy(cli, tmp_path):
    path = tmp_path / "dump.json"
    path.write_text(json.dumps({
        "data": [{"id": 5, "attributes": {"orderId": "ORD-5", "trackingId": "OLD"}}]
    }))
    result = cli("import", "legacy", str(path), "--no-suffix", "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["succeeded"] == 1

    shown = cli("shipment", "show", "5", "--json")
    assert json.loads(shown.stdout)["trackingId"] == "OLD"


def test_import_legacy_bad_document(cli, tmp_path):
    path = tmp_path / "dump.json"
    path.write_text("[]")
    result = cli("import", "legacy", str(path))
    assert result.exit_code == 1
    assert "E-1003" in result.stdout


def test_status_options_json(cli):
    result = cli("status-options", "--json")
    assert result.exit_code == 0
    options = json.loads(result.stdout)
    assert len(options) == 7
    assert options[0]["value"] == "yet_to_be_picked"


def test_dashboard_json(cli, csv_file):
    cli("import", "csv", str(csv_file))
    result = cli("dashboard", "--json")
    assert result.exit_code == 0, result.output
    stats = json.loads(result.stdout)["stats"]
    assert stats == {
        "totalShipments": 2,
        "deliveredCount": 1,
        "inTransitCount": 1,
        "pendingCount": 1,
    }


def test_shipment_add_and_delete(cli, csv_file):
    cli("import", "csv", str(csv_file))
    added = cli(
        "shipment", "add-status", "2", "--status", "delivered", "--details", "Signed",
        "--json",
    )
    assert added.exit_code == 0, added.output
    assert json.loads(added.stdout)["order_status"] == "delivered"

    deleted = cli("shipment", "delete", "2", "--yes")
    assert deleted.exit_code == 0, deleted.output
    assert "2 status update(s)" in deleted.stdout

    assert cli("shipment", "show", "2").exit_code == 1


def test_shipment_add_status_invalid(cli, csv_file):
    cli("import", "csv", str(csv_file))
    result = cli("shipment", "add-status", "1", "--status", "warp")
    assert result.exit_code == 1
    assert "E-2001" in result.stdout


def test_customer_add_and_list(cli):
    added = cli("customer", "add", "--name", "Ada", "--address", "9 Elm", "--phone", "+15551234")
    assert added.exit_code == 0, added.output
    listed = cli("customer", "list")
    assert "Ada" in listed.stdout

    bad = cli("customer", "add", "--name", "Bob", "--address", "1 Elm", "--phone", "nope")
    assert bad.exit_code == 1
    assert "E-2003" in bad.stdout


def test_customer_update_and_search(cli):
    cli("customer", "add", "--name", "Ada", "--address", "9 Elm", "--phone", "+15551234")
    updated = cli("customer", "update", "1", "--name", "Grace")
    assert updated.exit_code == 0, updated.output

    found = cli("customer", "search", "grace")
    assert found.exit_code == 0
    assert "Grace" in found.stdout
    assert "No customers found." in cli("customer", "search", "ada").stdout

    assert cli("customer", "update", "99", "--name", "X").exit_code == 1


def test_config_show(cli):
    result = cli("config", "show")
    assert result.exit_code == 0
    assert "csv_merge_mode" in result.stdout
