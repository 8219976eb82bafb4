#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/data/catalog.py - Catalog ingestion
Author: YourName
Date: 2025-05-03
Description: Normalizes game and interaction snapshots into one canonical shape,
             resolves game aliases (id or slug) and stores generated recommendations
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone

import numpy as np
import pandas as pd

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)

VALID_ACTIONS = ('like', 'favorite', 'played')

RECOMMENDATION_COLUMNS = ['user_id', 'game_id', 'score', 'reason', 'created_at']


def _is_missing(value):
    if value is None:
        return True
    if isinstance(value, float) and np.isnan(value):
        return True
    if value is pd.NaT:
        return True
    return False


def _to_float(value):
    if _is_missing(value) or value == '':
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if np.isnan(result) else result


def _label_names(values):
    """Turn a genre/tag/platform field into a list of names

    Accepts lists of strings, lists of {'name': ...} objects, RAWG platform
    entries ({'platform': {'name': ...}}), JSON strings and comma separated strings.
    """
    if _is_missing(values):
        return []

    if isinstance(values, str):
        text = values.strip()
        if not text:
            return []
        if text.startswith('['):
            try:
                values = json.loads(text)
            except ValueError:
                values = text.strip('[]').split(',')
        else:
            values = text.split(',')

    if isinstance(values, np.ndarray):
        values = values.tolist()
    if not isinstance(values, (list, tuple)):
        return []

    names = []
    for value in values:
        if isinstance(value, str):
            name = value
        elif isinstance(value, dict):
            name = value.get('name')
            if not name and isinstance(value.get('platform'), dict):
                name = value['platform'].get('name')
        else:
            name = None

        if name:
            name = str(name).strip().strip('"\'')
            if name:
                names.append(name)
    return names


def _to_date_string(value):
    if _is_missing(value):
        return None
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.strftime('%Y-%m-%d')
    text = str(value).strip()
    return text or None


def normalize_game(record):
    """Normalize a raw game record

    Args:
        record (dict): Raw record from the catalog

    Returns:
        dict: Game with `genres`, `tags` and `platforms` as [{'name': str}]
    """
    game_id = record.get('id')
    if _is_missing(game_id):
        raise ValueError(f"Game record without id: {record}")

    slug = record.get('slug')
    return {
        'id': str(game_id),
        'slug': None if _is_missing(slug) or slug == '' else str(slug),
        'name': None if _is_missing(record.get('name')) else str(record.get('name')),
        'genres': [{'name': n} for n in _label_names(record.get('genres'))],
        'tags': [{'name': n} for n in _label_names(record.get('tags'))],
        'platforms': [{'name': n} for n in _label_names(record.get('platforms'))],
        'rating': _to_float(record.get('rating')),
        'metacritic': _to_float(record.get('metacritic')),
        'playtime': _to_float(record.get('playtime')),
        'released': _to_date_string(record.get('released')),
    }


def normalize_games(records):
    """Normalize a list of game records, dropping records without an id"""
    games = []
    for record in records:
        try:
            games.append(normalize_game(record))
        except ValueError as e:
            logger.warning(str(e))
    return games


def normalize_interaction(record):
    """Normalize a raw interaction record

    Returns:
        dict or None: {'user_id', 'game_id', 'action'}, None for unusable records
    """
    user_id = record.get('user_id')
    game_id = record.get('game_id')
    action = record.get('action')

    if _is_missing(user_id) or _is_missing(game_id) or _is_missing(action):
        return None

    action = str(action).strip().lower()
    if action not in VALID_ACTIONS:
        logger.warning(f"Ignoring interaction with unknown action '{action}'")
        return None

    return {'user_id': str(user_id), 'game_id': str(game_id), 'action': action}


def normalize_interactions(records):
    """Normalize interaction records, dropping duplicates of (user, game, action)"""
    interactions = []
    seen = set()
    for record in records:
        interaction = normalize_interaction(record)
        if interaction is None:
            continue
        key = (interaction['user_id'], interaction['game_id'], interaction['action'])
        if key in seen:
            continue
        seen.add(key)
        interactions.append(interaction)
    return interactions


class GameResolver:
    """Resolve a game reference (canonical id or slug) to its canonical id"""

    def __init__(self, games):
        self.by_id = {}
        self.by_slug = {}
        for game in games:
            self.by_id[game['id']] = game
            if game.get('slug'):
                self.by_slug[game['slug']] = game['id']

    def resolve(self, identifier):
        """Return the canonical id, or None for unknown references"""
        if _is_missing(identifier):
            return None
        identifier = str(identifier)
        if identifier in self.by_id:
            return identifier
        return self.by_slug.get(identifier)

    def aliases(self, game_id):
        """All identifiers naming the game"""
        names = {game_id}
        game = self.by_id.get(game_id)
        if game and game.get('slug'):
            names.add(game['slug'])
        return names

    def get(self, game_id):
        return self.by_id.get(game_id)


def _read_table(path, id_columns):
    if not os.path.exists(path):
        raise FileNotFoundError(f"Data file not found: {path}")

    if path.endswith('.json'):
        return pd.read_json(path, orient='records', dtype=False, convert_dates=False)
    return pd.read_csv(path, dtype={col: str for col in id_columns})


def load_games(path):
    """Load a game catalog snapshot from JSON or CSV

    Games without genres are left out, as in the catalog query used for training.
    """
    logger.info(f"Loading games from {path}")
    df = _read_table(path, ['id', 'slug'])
    games = normalize_games(df.to_dict('records'))

    with_genres = [game for game in games if game['genres']]
    if len(with_genres) < len(games):
        logger.info(f"Skipped {len(games) - len(with_genres)} games without genres")

    logger.info(f"Loaded {len(with_genres)} games")
    return with_genres


def load_interactions(path):
    """Load an interaction snapshot from JSON or CSV"""
    logger.info(f"Loading interactions from {path}")
    df = _read_table(path, ['user_id', 'game_id'])
    interactions = normalize_interactions(df.to_dict('records'))
    logger.info(f"Loaded {len(interactions)} interactions")
    return interactions


class RecommendationStore:
    """CSV-backed store of generated recommendations"""

    def __init__(self, path):
        self.path = path

    def _read(self):
        if not os.path.exists(self.path):
            return pd.DataFrame(columns=RECOMMENDATION_COLUMNS)
        return pd.read_csv(self.path, dtype={'user_id': str, 'game_id': str})

    def replace(self, user_id, recommendations):
        """Replace every stored recommendation of a user with a new set

        Args:
            user_id (str): User ID
            recommendations (list): Dicts with gameId, score and reason

        Raises:
            PersistenceError: The store could not be read or written
        """
        user_id = str(user_id)
        created_at = datetime.now(timezone.utc).isoformat()
        rows = [{
            'user_id': user_id,
            'game_id': rec['gameId'],
            'score': float(rec['score']),
            'reason': rec['reason'],
            'created_at': created_at,
        } for rec in recommendations]

        try:
            df = self._read()
            df = df[df['user_id'] != user_id]
            if rows:
                new_rows = pd.DataFrame(rows, columns=RECOMMENDATION_COLUMNS)
                df = new_rows if df.empty else pd.concat([df, new_rows], ignore_index=True)

            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.csv.tmp')
            os.close(fd)
            try:
                df.to_csv(tmp_path, index=False)
                os.replace(tmp_path, self.path)
            finally:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise PersistenceError(f"Failed to save recommendations for user {user_id}: {e}") from e

        logger.info(f"Stored {len(rows)} recommendations for user {user_id}")
        return len(rows)

    def get(self, user_id, limit=20):
        """Stored recommendations of a user, best first"""
        try:
            df = self._read()
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise PersistenceError(f"Failed to read recommendations: {e}") from e

        df = df[df['user_id'] == str(user_id)].sort_values('score', ascending=False).head(limit)
        return [{
            'gameId': row['game_id'],
            'score': float(row['score']),
            'reason': row['reason'],
        } for row in df.to_dict('records')]
