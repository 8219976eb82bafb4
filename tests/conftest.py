import pytest

from game_recsys.config import load_config

GENRES = ['Action', 'Puzzle', 'RPG', 'Strategy']
TAGS = [f'tag-{i}' for i in range(25)]


def make_game(i):
    return {
        'id': f'g{i}',
        'slug': f'game-{i}',
        'name': f'Game {i}',
        'genres': [{'name': GENRES[i % len(GENRES)]}, {'name': GENRES[(i + 1) % len(GENRES)]}],
        'tags': [TAGS[i % len(TAGS)], TAGS[(i * 7) % len(TAGS)]],
        'platforms': [{'platform': {'name': 'PC'}}],
        'rating': round(1 + (i % 9) * 0.5, 1),
        'metacritic': 50 + i % 50,
        'playtime': (i * 3) % 60,
        'released': f'{2000 + i % 25}-06-15',
    }


@pytest.fixture
def games():
    return [make_game(i) for i in range(60)]


@pytest.fixture
def interactions():
    actions = ['like', 'favorite', 'played']
    records = []
    for u, user_id in enumerate(['u1', 'u2', 'u3']):
        for k in range(6):
            game_number = u * 10 + k
            records.append({'user_id': user_id, 'game_id': f'g{game_number}', 'action': actions[k % 3]})
    return records


@pytest.fixture
def config(tmp_path):
    return load_config(overrides={
        'epochs': 2,
        'batch_size': 16,
        'random_seed': 7,
        'use_gpu': False,
        'model_dir': str(tmp_path / 'model'),
    })


@pytest.fixture
def trained_model(games, interactions, config):
    from game_recsys.recommender import train
    return train(games, interactions, config)
