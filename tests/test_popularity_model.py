import pytest

from game_recsys.data.catalog import normalize_games
from game_recsys.models.popularity_model import PopularityModel, popularity_rank


def test_ranks_by_rating_times_playtime_and_reports_rating():
    games = normalize_games([
        {'id': 'B', 'rating': 3.0, 'playtime': 5, 'genres': ['Puzzle']},
        {'id': 'A', 'rating': 4.5, 'playtime': 20, 'genres': ['Action']},
    ])

    ranked = popularity_rank(games, limit=20)

    assert [rec['gameId'] for rec in ranked] == ['A', 'B']
    assert ranked[0]['score'] == pytest.approx(0.9)
    assert ranked[1]['score'] == pytest.approx(0.6)
    assert all(rec['reason'] == 'Popular game with high ratings' for rec in ranked)


def test_missing_rating_or_playtime_ranks_last():
    games = normalize_games([
        {'id': 'no-rating', 'playtime': 100},
        {'id': 'rated', 'rating': 1.0, 'playtime': 1},
        {'id': 'no-playtime', 'rating': 5.0},
    ])

    ranked = popularity_rank(games)

    assert ranked[0]['gameId'] == 'rated'
    assert [rec['gameId'] for rec in ranked[1:]] == ['no-rating', 'no-playtime']
    assert ranked[1]['score'] == 0.0


def test_limit_and_empty_catalog(games):
    assert len(popularity_rank(normalize_games(games), limit=5)) == 5
    assert popularity_rank([], limit=5) == []


def test_predict_is_user_independent():
    model = PopularityModel()
    game = normalize_games([{'id': 'x', 'rating': 2.5}])[0]
    assert model.predict('u1', game) == model.predict('u2', game) == pytest.approx(0.5)


def test_save_and_load(tmp_path, games):
    model = PopularityModel().fit(normalize_games(games))
    assert model.save(str(tmp_path))

    restored = PopularityModel().load(str(tmp_path))

    assert restored.recommend(n=10) == model.recommend(n=10)


def test_saved_model_holds_only_the_ranking(tmp_path, games):
    import pickle

    PopularityModel().fit(normalize_games(games)).save(str(tmp_path))

    with open(tmp_path / 'popularity_model.pkl', 'rb') as f:
        assert set(pickle.load(f)) == {'popular_items'}
