# tests/test_cli.py

import json

import networkx as nx
from typer.testing import CliRunner

import citenet.cli.session_cli as session_cli
from citenet.cli.main import app as cli_app
from citenet.graph.storage import load_latest_sessions

runner = CliRunner()


def _use_fake_provider(monkeypatch, make_provider):
    monkeypatch.setattr(session_cli, "get_provider", lambda name=None: make_provider())


def test_explore_builds_and_saves_session(data_dir, monkeypatch, make_provider):
    _use_fake_provider(monkeypatch, make_provider)

    result = runner.invoke(cli_app, ["explore", "SEED"])

    assert result.exit_code == 0, result.output
    assert "Smith 2010" in result.output
    assert "Saved 1 session(s)" in result.output

    [saved] = load_latest_sessions(data_dir / "sessions")
    assert saved.incoming_ids == ["R1", "R2"]


def test_explore_unknown_seed_exits_with_error(data_dir, monkeypatch, make_provider):
    _use_fake_provider(monkeypatch, make_provider)

    result = runner.invoke(cli_app, ["explore", "NOPE"])

    assert result.exit_code == 1
    assert load_latest_sessions(data_dir / "sessions") is None


def test_import_list_from_text_file(data_dir, monkeypatch, make_provider, tmp_path):
    _use_fake_provider(monkeypatch, make_provider)
    ids = tmp_path / "ids.txt"
    ids.write_text("A\nB\nC\n", encoding="utf-8")

    result = runner.invoke(cli_app, ["import-list", str(ids), "--label", "my list"])

    assert result.exit_code == 0, result.output
    [saved] = load_latest_sessions(data_dir / "sessions")
    assert saved.label == "my list"
    assert saved.is_list_based


def test_view_commands_read_latest_snapshot(data_dir, monkeypatch, make_provider):
    _use_fake_provider(monkeypatch, make_provider)
    assert runner.invoke(cli_app, ["explore", "SEED"]).exit_code == 0

    network = runner.invoke(cli_app, ["network", "--json"])
    assert network.exit_code == 0, network.output
    payload = json.loads(network.stdout)
    assert {n["id"] for n in payload["nodes"]} >= {"SEED", "R1", "X"}
    assert "from" in payload["edges"][0]

    authors = runner.invoke(cli_app, ["authors", "--json"])
    assert authors.exit_code == 0, authors.output
    assert json.loads(authors.stdout)["chosen_threshold"] == 2

    completeness = runner.invoke(cli_app, ["completeness"])
    assert completeness.exit_code == 0, completeness.output
    assert "Overall" in completeness.output

    export = runner.invoke(cli_app, ["export", "--format", "ris", "--output-dir", str(data_dir / "out")])
    assert export.exit_code == 0, export.output
    assert (data_dir / "out" / "Smith_2010.ris").exists()


def test_view_commands_without_sessions_fail(data_dir):
    result = runner.invoke(cli_app, ["network"])

    assert result.exit_code == 1
    assert "No saved sessions" in result.output


def test_sessions_lists_and_closes(data_dir, monkeypatch, make_provider):
    _use_fake_provider(monkeypatch, make_provider)
    runner.invoke(cli_app, ["explore", "SEED"])

    listing = runner.invoke(cli_app, ["sessions"])
    assert listing.exit_code == 0
    assert "Smith 2010" in listing.output

    closed = runner.invoke(cli_app, ["sessions", "--close", "0"])
    assert closed.exit_code == 0
    assert "Closed session" in closed.output
    assert load_latest_sessions(data_dir / "sessions") == []


def test_import_list_restores_json_snapshot(data_dir, monkeypatch, make_provider, tmp_path):
    _use_fake_provider(monkeypatch, make_provider)
    runner.invoke(cli_app, ["explore", "SEED"])
    snapshot = tmp_path / "backup.json"
    snapshot.write_text((data_dir / "sessions" / "sessions-latest.json").read_text(encoding="utf-8"), encoding="utf-8")
    runner.invoke(cli_app, ["sessions", "--close-all"])

    result = runner.invoke(cli_app, ["import-list", str(snapshot)])

    assert result.exit_code == 0, result.output
    assert "Restored 1 session(s)" in result.output


def test_network_writes_graphml(data_dir, monkeypatch, make_provider):
    _use_fake_provider(monkeypatch, make_provider)
    runner.invoke(cli_app, ["explore", "SEED"])
    target = data_dir / "graphs" / "seed.graphml"

    result = runner.invoke(cli_app, ["network", "--graphml", str(target)])

    assert result.exit_code == 0, result.output
    assert target.exists()
    assert nx.read_graphml(target).has_edge("SEED", "A")


def test_network_rejects_unknown_color(data_dir, monkeypatch, make_provider):
    _use_fake_provider(monkeypatch, make_provider)
    runner.invoke(cli_app, ["explore", "SEED"])

    result = runner.invoke(cli_app, ["network", "--json", "--color", "venue"])

    assert result.exit_code == 2
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_sessions_close_uses_manager_bounds(data_dir, monkeypatch, make_provider):
    _use_fake_provider(monkeypatch, make_provider)
    runner.invoke(cli_app, ["explore", "SEED"])

    result = runner.invoke(cli_app, ["sessions", "--close", "3"])

    assert result.exit_code == 1
    assert "No open session at index 3" in result.output
    assert len(load_latest_sessions(data_dir / "sessions")) == 1
