"""CLI smoke test against a temporary DuckDB file."""

import json

from typer.testing import CliRunner

from predamm.cli.app import app

runner = CliRunner()


def _config_dir(tmp_path):
    (tmp_path / "default.toml").write_text('[logging]\nlevel = "ERROR"\n')
    return tmp_path


def _invoke(db, *args):
    result = runner.invoke(app, ["-C", str(_config_dir(db.parent)), "--db", str(db), *args])
    assert result.exit_code == 0, result.output
    return result.output


def test_market_lifecycle_through_cli(tmp_path):
    db = tmp_path / "cli.duckdb"
    params = json.dumps(
        {"matchup_id": "cli", "team1": {"id": "a", "name": "Alpha"}, "team2": {"id": "b", "name": "Bravo"}}
    )
    assert "matchup_winner_cli" in _invoke(db, "markets", "create", "matchup", "--params", params, "--open")
    assert "Total: 1 markets" in _invoke(db, "markets", "list")

    _invoke(db, "account", "deposit", "alice", "100")
    quote = json.loads(_invoke(db, "bets", "quote", "matchup_winner_cli", "outcome_a", "50"))
    assert abs(quote["shares"] - 83.18) < 0.01

    assert "Placed" in _invoke(db, "bets", "place", "matchup_winner_cli", "outcome_a", "50", "--user", "alice")
    assert "alice: 50.00" in _invoke(db, "account", "balance", "alice")
    assert "Total: 1 bets" in _invoke(db, "bets", "list", "--market", "matchup_winner_cli")
    assert "Alpha" in _invoke(db, "markets", "show", "matchup_winner_cli")

    _invoke(db, "markets", "lock", "matchup_winner_cli")
    assert "1/1 bets won" in _invoke(db, "settle", "run", "matchup_winner_cli", "outcome_a")
    assert "alice: 133.18" in _invoke(db, "account", "balance", "alice")
    assert "Total trades: 1" in _invoke(db, "log", "stats")
    stats = json.loads(_invoke(db, "log", "stats", "--market", "matchup_winner_cli", "--json"))
    assert stats["by_kind"] == {"buy": 1}


def test_engine_errors_exit_nonzero(tmp_path):
    db = tmp_path / "cli.duckdb"
    result = runner.invoke(app, ["-C", str(_config_dir(tmp_path)), "--db", str(db), "markets", "open", "missing"])
    assert result.exit_code == 1
    assert "market_not_found" in result.output
