import threading

import pytest

from game_recsys.data.catalog import normalize_games
from game_recsys.exceptions import ArtifactUnavailableError
from game_recsys.models import model_handle as handle_module
from game_recsys.models.model_handle import ModelHandle


def test_missing_artifact_is_unavailable(tmp_path):
    handle = ModelHandle(str(tmp_path / 'missing'))

    with pytest.raises(ArtifactUnavailableError):
        handle.load()
    assert not handle.is_loaded()


def test_artifact_written_after_failed_load_is_picked_up(games, interactions, config):
    from game_recsys.recommender import train

    handle = ModelHandle(config['model_dir'], config=config)
    with pytest.raises(ArtifactUnavailableError):
        handle.load()

    train(games, interactions, config)

    model = handle.load()
    assert handle.is_loaded()
    assert len(model.user_index) == 3


def test_loads_once_and_scores(trained_model, config, games):
    handle = ModelHandle(config['model_dir'], config=config)

    model = handle.load()

    assert handle.is_loaded()
    assert handle.load() is model
    game = normalize_games(games)[40]
    assert handle.score('u1', game) == pytest.approx(trained_model.predict('u1', game), abs=1e-6)
    assert len(handle.recommend('u1', normalize_games(games), [], n=5)) == 5


def test_concurrent_first_requests_share_one_load(trained_model, config, monkeypatch):
    calls = []
    original = handle_module.HybridRecommender.load

    def counting_load(self, path):
        calls.append(path)
        return original(self, path)

    monkeypatch.setattr(handle_module.HybridRecommender, 'load', counting_load)
    handle = ModelHandle(config['model_dir'], config=config)
    results = []

    threads = [threading.Thread(target=lambda: results.append(handle.load())) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert len({id(model) for model in results}) == 1
