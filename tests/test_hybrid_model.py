import json
import os

import pytest
import torch

from game_recsys.data.catalog import normalize_games
from game_recsys.models.hybrid_model import HybridRecommender, HybridScoringNetwork, recommendation_reason
from game_recsys.exceptions import ArtifactUnavailableError, ScoringError


def test_network_outputs_probabilities():
    network = HybridScoringNetwork(num_users=3, num_games=10, feature_size=8)
    network.eval()

    with torch.no_grad():
        scores = network(torch.tensor([0, 1, 2]), torch.tensor([4, 5, 9]), torch.rand(3, 8))

    assert scores.shape == (3,)
    assert torch.all((scores >= 0) & (scores <= 1))


def test_network_handles_single_example():
    network = HybridScoringNetwork(num_users=1, num_games=2, feature_size=4)
    network.eval()
    with torch.no_grad():
        score = network(torch.tensor([0]), torch.tensor([1]), torch.rand(1, 4))
    assert score.shape == (1,)


def test_training_writes_artifact(trained_model, config):
    model_dir = config['model_dir']
    assert os.path.exists(os.path.join(model_dir, 'model.pt'))

    with open(os.path.join(model_dir, 'metadata.json')) as f:
        metadata = json.load(f)

    for key in ('userIdToIndex', 'gameIdToIndex', 'indexToUserId', 'indexToGameId', 'featureSize',
                'numUsers', 'numGames', 'genreList', 'tagList', 'platformList', 'config', 'trainedAt'):
        assert key in metadata
    assert metadata['numUsers'] == 3
    assert metadata['numGames'] == 60
    assert metadata['featureSize'] == len(metadata['genreList']) + len(metadata['tagList']) + 4
    assert metadata['config']['topNRecommendations'] == 20
    assert len(trained_model.training_history['loss']) == config['epochs']


def test_loaded_model_scores_like_trained_model(trained_model, config, games):
    loaded = HybridRecommender(config=config).load(config['model_dir'])
    game = normalize_games(games)[30]

    assert loaded.predict('u1', game) == pytest.approx(trained_model.predict('u1', game), abs=1e-6)


def test_recommend_excludes_interacted_games(trained_model, games):
    catalog = normalize_games(games)
    interactions = [{'user_id': 'u1', 'game_id': 'g0', 'action': 'like'},
                    {'user_id': 'u1', 'game_id': 'game-1', 'action': 'played'}]

    recommendations = trained_model.recommend('u1', catalog, interactions, n=100)
    recommended = {rec['gameId'] for rec in recommendations}

    assert 'g0' not in recommended
    assert 'g1' not in recommended
    assert len(recommendations) == 58


def test_recommend_is_sorted_bounded_and_annotated(trained_model, games):
    catalog = normalize_games(games)
    recommendations = trained_model.recommend('u2', catalog, [])

    scores = [rec['score'] for rec in recommendations]
    assert len(recommendations) == 20
    assert scores == sorted(scores, reverse=True)
    assert all(0.0 <= s <= 1.0 for s in scores)
    assert all(rec['reason'].startswith('Similar genres: ') for rec in recommendations)


def test_recommend_unknown_user_is_empty(trained_model, games):
    assert trained_model.recommend('stranger', normalize_games(games), []) == []


def test_recommend_skips_games_missing_from_index(trained_model, games):
    catalog = normalize_games(games[:3] + [{'id': 'new-game', 'genres': ['Action']}])
    recommendations = trained_model.recommend('u1', catalog, [])
    assert 'new-game' not in {rec['gameId'] for rec in recommendations}
    assert len(recommendations) == 3


def test_recommend_timeout_raises_scoring_error(trained_model, games):
    with pytest.raises(ScoringError):
        trained_model.recommend('u1', normalize_games(games), [], timeout=-1)


def test_reason_falls_back_without_genres():
    assert recommendation_reason({'genres': []}) == 'Based on your preferences'
    assert recommendation_reason({'genres': [{'name': 'A'}, {'name': 'B'}, {'name': 'C'}]}) == \
        'Similar genres: A, B'


def test_load_missing_artifact(tmp_path):
    with pytest.raises(ArtifactUnavailableError):
        HybridRecommender().load(str(tmp_path / 'nothing'))


def test_load_rejects_inconsistent_metadata(trained_model, config):
    metadata_path = os.path.join(config['model_dir'], 'metadata.json')
    with open(metadata_path) as f:
        metadata = json.load(f)
    metadata['featureSize'] += 1
    with open(metadata_path, 'w') as f:
        json.dump(metadata, f)

    with pytest.raises(ArtifactUnavailableError):
        HybridRecommender(config=config).load(config['model_dir'])


def test_metadata_survives_reload_and_resave(trained_model, config, tmp_path):
    metadata_path = os.path.join(config['model_dir'], 'metadata.json')
    with open(metadata_path) as f:
        metadata = json.load(f)
    metadata['deployment'] = {'region': 'eu'}
    with open(metadata_path, 'w') as f:
        json.dump(metadata, f)

    loaded = HybridRecommender(config=config).load(config['model_dir'])
    loaded.save(str(tmp_path / 'copy'))

    with open(tmp_path / 'copy' / 'metadata.json') as f:
        resaved = json.load(f)

    assert resaved['deployment'] == {'region': 'eu'}
    for key in ('userIdToIndex', 'gameIdToIndex', 'indexToUserId', 'indexToGameId',
                'genreList', 'tagList', 'platformList', 'featureSize', 'trainedAt'):
        assert resaved[key] == metadata[key]


def test_save_replaces_previous_artifact(trained_model, config):
    trained_model.save(config['model_dir'])

    assert sorted(os.listdir(config['model_dir'])) == ['metadata.json', 'model.pt']
    assert not os.path.exists(config['model_dir'] + '.old')


def test_predict_scores_known_pairs_only(trained_model, games):
    game = normalize_games(games)[7]
    assert 0.0 <= trained_model.predict('u3', game) <= 1.0
    assert trained_model.predict('nobody', game) is None
    assert trained_model.predict('u3', {'id': 'unknown', 'genres': []}) is None


def test_artifact_top_n_is_default_only(games, interactions, config):
    from game_recsys.recommender import train

    train(games, interactions, dict(config, top_n_recommendations=7))

    assert HybridRecommender().load(config['model_dir']).top_n == 7
    assert HybridRecommender(config={'top_n_recommendations': 12}).load(config['model_dir']).top_n == 12
