import os

import pytest

from game_recsys.data.catalog import RecommendationStore
from game_recsys.exceptions import InsufficientDataError, PersistenceError
from game_recsys.recommender import (COLD_START_MODEL_UNAVAILABLE, COLD_START_NO_CANDIDATES,
                                     COLD_START_NO_INTERACTIONS, COLD_START_SCORING_FAILED,
                                     COLD_START_UNKNOWN_USER, PERSONALIZED, GameRecommender, train)


def _popularity_key(game):
    return (game['rating'] or 0) * (game['playtime'] or 0)


def test_no_interactions_is_cold_start(games, config):
    recommender = GameRecommender(config)

    result = recommender.generate('new-user', games, [])

    assert result.is_cold_start
    assert result.status == COLD_START_NO_INTERACTIONS
    assert result.message == 'Recommendations based on popular games (you have no interactions yet)'
    assert result.count == 20
    by_id = {g['id']: g for g in games}
    keys = [_popularity_key(by_id[rec['gameId']]) for rec in result.recommendations]
    assert keys == sorted(keys, reverse=True)


def test_missing_model_degrades_to_popularity(games, interactions, config):
    recommender = GameRecommender(config)

    result = recommender.generate('u1', games, interactions)

    assert result.is_cold_start
    assert result.status == COLD_START_MODEL_UNAVAILABLE
    assert result.recommendations


def test_personalized_recommendations(trained_model, games, interactions, config):
    recommender = GameRecommender(config)

    result = recommender.generate('u1', games, interactions)

    assert not result.is_cold_start
    assert result.status == PERSONALIZED
    assert result.message == 'Personalized recommendations generated successfully'
    assert result.count == 20
    interacted = {i['game_id'] for i in interactions if i['user_id'] == 'u1'}
    assert not interacted & {rec['gameId'] for rec in result.recommendations}
    assert all(0.0 <= rec['score'] <= 1.0 for rec in result.recommendations)


def test_user_unknown_to_model_is_cold_start(trained_model, games, config):
    recommender = GameRecommender(config)

    result = recommender.generate('u9', games, [{'user_id': 'u9', 'game_id': 'g1', 'action': 'like'}])

    assert result.status == COLD_START_UNKNOWN_USER
    assert result.is_cold_start
    assert result.recommendations[0]['reason'] == 'Popular game with high ratings'


def test_no_candidates_left_is_cold_start(trained_model, games, config):
    everything = [{'user_id': 'u1', 'game_id': g['id'], 'action': 'played'} for g in games]

    result = GameRecommender(config).generate('u1', games, everything)

    assert result.status == COLD_START_NO_CANDIDATES


def test_scoring_failure_falls_back(trained_model, games, interactions, config, monkeypatch):
    recommender = GameRecommender(config)
    model = recommender.model_handle.load()

    def broken(*args, **kwargs):
        raise RuntimeError('tensor shape mismatch')

    monkeypatch.setattr(model, 'recommend', broken)
    result = recommender.generate('u1', games, interactions)

    assert result.status == COLD_START_SCORING_FAILED
    assert result.recommendations


def test_results_replace_stored_set(games, interactions, config, tmp_path):
    store = RecommendationStore(str(tmp_path / 'recs.csv'))
    recommender = GameRecommender(config, store=store)

    first = recommender.generate('u1', games, [])
    second = recommender.generate('u1', games[:3], [])

    assert first.persisted and second.persisted
    stored = recommender.stored_recommendations('u1')
    assert {rec['gameId'] for rec in stored} == {g['id'] for g in games[:3]}


def test_persistence_failure_is_reported_not_raised(games, config):
    class BrokenStore:
        def replace(self, user_id, recommendations):
            raise PersistenceError('disk full')

    result = GameRecommender(config, store=BrokenStore()).generate('u1', games, [])

    assert not result.persisted
    assert result.persistence_error == 'disk full'
    assert result.count == 20


def test_to_dict_shape(games, config):
    data = GameRecommender(config).generate('u1', games, []).to_dict()

    assert set(data) == {'recommendations', 'count', 'isColdStart', 'status', 'message'}
    assert data['isColdStart'] is True


def test_train_rejects_small_catalog_without_artifact(games, interactions, config):
    with pytest.raises(InsufficientDataError):
        train(games[:30], interactions, config)

    assert not os.path.exists(config['model_dir'])


def test_retrain_resets_cached_model(games, interactions, config):
    recommender = GameRecommender(config)
    assert recommender.generate('u1', games, interactions).status == COLD_START_MODEL_UNAVAILABLE

    recommender.train(games, interactions)

    assert recommender.generate('u1', games, interactions).status == PERSONALIZED


def test_artifact_written_after_failed_request_is_used(games, interactions, config):
    recommender = GameRecommender(config)
    assert recommender.generate('u1', games, interactions).status == COLD_START_MODEL_UNAVAILABLE

    # trained by a separate offline run, no reset() on this service
    train(games, interactions, config)

    assert recommender.generate('u1', games, interactions).status == PERSONALIZED


def test_service_top_n_applies_to_personalized_results(trained_model, games, interactions, config):
    recommender = GameRecommender(dict(config, top_n_recommendations=40))

    personalized = recommender.generate('u1', games, interactions)
    cold = recommender.generate('newcomer', games, [])

    assert personalized.status == PERSONALIZED
    assert personalized.count == 40
    assert cold.count == 40
