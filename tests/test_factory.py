"""Market factory: per-type defaults, priors and validation."""

import pytest

from predamm.errors import ValidationError
from predamm.factory import MarketFactory
from predamm.models import MarketStatus, MarketType

START = 1_700_000_000_000


@pytest.fixture
def factory():
    return MarketFactory(clock=lambda: START - 86_400_000)


def test_pool_winner(factory):
    market = factory.create(
        "pool_winner",
        {
            "pool_id": "p1",
            "participants": [{"id": "u1", "name": "Ann"}, {"id": "u2", "name": "Ben"}, {"id": "u3", "name": "Cy"}],
            "closes_at": START,
        },
    )
    assert market.market_id == "pool_winner_p1"
    assert market.status == MarketStatus.PENDING
    assert [o.outcome_id for o in market.outcomes] == ["outcome_u1", "outcome_u2", "outcome_u3"]
    assert (market.liquidity, market.min_bet, market.max_bet, market.max_exposure) == (100.0, 1.0, 1000.0, 10000.0)
    assert market.closes_at == START
    assert market.prices() == pytest.approx([1 / 3] * 3)
    assert "pool" in market.tags


def test_matchup_with_projection(factory):
    market = factory.create(
        MarketType.MATCHUP,
        {
            "matchup_id": "g7",
            "team1": {"id": "duke", "name": "Duke", "seed": 1},
            "team2": {"id": "unc", "name": "UNC", "seed": 8},
            "team1_win_probability": 0.7,
            "starts_at": START,
        },
    )
    assert market.market_id == "matchup_winner_g7"
    assert market.title == "(1) Duke vs (8) UNC"
    assert market.outcomes[0].label == "(1) Duke"
    assert market.closes_at == START - 5 * 60 * 1000
    assert (market.liquidity, market.max_bet, market.max_exposure) == (100.0, 500.0, 5000.0)
    assert market.prices() == pytest.approx([0.7, 0.3])
    # Seeded shares are not liability.
    assert market.liabilities() == [0.0, 0.0]


def test_futures_priors_from_american_odds(factory):
    market = factory.create(
        "futures",
        {
            "tournament_id": "t24",
            "teams": [
                {"id": "a", "name": "Alpha", "odds": -150},
                {"id": "b", "name": "Bravo", "odds": 300},
                {"id": "c", "name": "Charlie", "odds": 900},
            ],
            "starts_at": START,
        },
    )
    assert market.featured is True
    assert (market.liquidity, market.max_bet, market.max_exposure) == (500.0, 1000.0, 50000.0)
    assert market.closes_at == START - 60 * 60 * 1000
    implied = [0.6, 0.25, 0.1]
    total = sum(implied)
    assert market.prices() == pytest.approx([p / total for p in implied])


def test_proposition_over_under(factory):
    market = factory.create(
        "proposition",
        {"prop_id": "upsets", "subject": "Total upsets", "line": 8.5, "starts_at": START},
    )
    assert [o.label for o in market.outcomes] == ["Under 8.5", "Over 8.5"]
    assert [o.outcome_id for o in market.outcomes] == ["under", "over"]
    assert market.closes_at == START
    assert market.max_bet == 500.0


def test_head_to_head_has_tie_outcome(factory):
    market = factory.create(
        "head_to_head",
        {
            "matchup_id": "r1",
            "competitor1": {"id": "g1", "name": "Rory"},
            "competitor2": {"id": "g2", "name": "Scottie"},
            "starts_at": START,
        },
    )
    assert [o.outcome_id for o in market.outcomes] == ["outcome_g1", "outcome_g2", "outcome_tie"]
    assert market.prices() == pytest.approx([0.5 / 1.1, 0.5 / 1.1, 0.1 / 1.1])
    assert (market.liquidity, market.max_bet, market.max_exposure) == (50.0, 200.0, 2000.0)
    assert market.closes_at == START - 30 * 60 * 1000


def test_config_and_call_overrides():
    factory = MarketFactory(overrides={"matchup": {"liquidity": 250, "max_bet": 750}})
    params = {
        "matchup_id": "x",
        "team1": {"id": "a", "name": "A"},
        "team2": {"id": "b", "name": "B"},
        "max_bet": 900,
        "tags": ["late"],
    }
    market = factory.create("matchup", params)
    assert market.liquidity == 250.0
    assert market.max_bet == 900.0
    assert market.tags == ("matchup", "late")


def test_invalid_params_raise_validation_error(factory):
    with pytest.raises(ValidationError):
        factory.create("pool_winner", {"pool_id": "p", "participants": [{"id": "u", "name": "Solo"}]})
    with pytest.raises(ValidationError):
        factory.create("matchup", {"matchup_id": "m", "team1": {"id": "a", "name": "A"}})
    with pytest.raises(ValidationError):
        factory.create("lottery", {})
    with pytest.raises(ValidationError):
        factory.create(
            "proposition",
            {"prop_id": "p", "subject": "s", "line": 1.5, "min_bet": 50, "max_bet": 10},
        )
    with pytest.raises(ValidationError):
        factory.create(
            "futures",
            {
                "tournament_id": "t",
                "teams": [{"id": "a", "name": "A", "odds": 50}, {"id": "b", "name": "B", "odds": 200}],
            },
        )


def test_exchange_creates_and_persists(exchange):
    market = exchange.create_market(
        "matchup",
        {"matchup_id": "e1", "team1": {"id": "a", "name": "A"}, "team2": {"id": "b", "name": "B"}},
    )
    assert market.version == 0
    assert exchange.get_market(market.market_id) == market
    opened = exchange.open_market(market.market_id)
    assert opened.status == MarketStatus.OPEN
    bet = exchange.place_bet(market.market_id, "outcome_a", 10.0, "alice")
    assert bet.probability_at_placement == pytest.approx(0.5)
