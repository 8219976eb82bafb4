#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/recommender.py - Main game recommender
Author: YourName
Date: 2025-05-07
Description: Training pipeline and the recommendation service that chooses between
             personalized scoring and the popularity fallback
"""

import logging
import traceback

import torch

from .config import load_config
from .data.catalog import GameResolver, normalize_games, normalize_interactions
from .data.feature_extractor import GameFeatureExtractor
from .data.indexer import build_index
from .data.training_set import TrainingSetSynthesizer, check_minimums, split_examples
from .evaluation.evaluator import RecommenderEvaluator
from .exceptions import ArtifactUnavailableError, PersistenceError
from .models.hybrid_model import HybridRecommender
from .models.model_handle import ModelHandle
from .models.popularity_model import popularity_rank

logger = logging.getLogger(__name__)

PERSONALIZED = 'personalized'
COLD_START_NO_INTERACTIONS = 'cold_start_no_interactions'
COLD_START_UNKNOWN_USER = 'cold_start_unknown_user'
COLD_START_NO_CANDIDATES = 'cold_start_no_candidates'
COLD_START_MODEL_UNAVAILABLE = 'cold_start_model_unavailable'
COLD_START_SCORING_FAILED = 'cold_start_scoring_failed'

MESSAGES = {
    PERSONALIZED: 'Personalized recommendations generated successfully',
    COLD_START_NO_INTERACTIONS: 'Recommendations based on popular games (you have no interactions yet)',
    COLD_START_UNKNOWN_USER: ('Recommendations based on popular games '
                              '(your activity is not part of the trained model yet)'),
    COLD_START_NO_CANDIDATES: ('Recommendations based on popular games '
                               '(no new games left to personalize)'),
    COLD_START_MODEL_UNAVAILABLE: ('Recommendations based on popular games '
                                   '(personalized model not available)'),
    COLD_START_SCORING_FAILED: ('Recommendations based on popular games '
                                '(personalized scoring failed)'),
}


def train(games, interactions, config=None, model_dir=None, show_progress=False):
    """Train a hybrid model from a full snapshot and save the artifact

    Args:
        games (list): Game records (raw or normalized)
        interactions (list): Interaction records of every user
        config (dict): Configuration, defaults when None
        model_dir (str): Artifact directory, `config['model_dir']` when None
        show_progress (bool): Show a progress bar over epochs

    Returns:
        HybridRecommender: Trained and saved model

    Raises:
        InsufficientDataError: The snapshot does not meet the minimums
    """
    config = config or load_config()
    model_dir = model_dir or config['model_dir']
    seed = config.get('random_seed')

    games = normalize_games(games)
    interactions = normalize_interactions(interactions)

    counts = check_minimums(games, interactions, config)
    logger.info(f"Training data: {counts['games']} games, {counts['interactions']} interactions, "
                f"{counts['users']} users")

    extractor = GameFeatureExtractor(top_tag_count=config['top_tag_count'])
    extractor.build_vocabularies(games)
    feature_map = extractor.encode_many(games)

    user_index = build_index(interaction['user_id'] for interaction in interactions)
    game_index = build_index(game['id'] for game in games)
    resolver = GameResolver(games)

    synthesizer = TrainingSetSynthesizer(config, random_state=seed)
    examples = synthesizer.synthesize(games, interactions, user_index, game_index, feature_map, resolver)
    train_set, validation_set = split_examples(examples, config['validation_split'], random_state=seed)

    device = torch.device('cuda' if config.get('use_gpu') and torch.cuda.is_available() else 'cpu')
    model = HybridRecommender(extractor, user_index, game_index, config=config, device=device)
    model.fit(train_set, validation_set, show_progress=show_progress)

    if len(user_index) < 5 or len(examples) < 200:
        logger.warning(f"Small training set ({len(user_index)} users, {len(examples)} examples); "
                       f"the model is likely to overfit")

    metrics = RecommenderEvaluator().evaluate_validation(model, validation_set)
    model.metadata['validation'] = metrics
    model.metadata['synthesis'] = synthesizer.stats

    model.save(model_dir)
    return model


class RecommendationResult:
    """Outcome of one generation request"""

    def __init__(self, recommendations, status, persisted=False, persistence_error=None):
        self.recommendations = recommendations
        self.status = status
        self.persisted = persisted
        self.persistence_error = persistence_error

    @property
    def is_cold_start(self):
        return self.status != PERSONALIZED

    @property
    def message(self):
        return MESSAGES[self.status]

    @property
    def count(self):
        return len(self.recommendations)

    def to_dict(self):
        return {
            'recommendations': self.recommendations,
            'count': self.count,
            'isColdStart': self.is_cold_start,
            'status': self.status,
            'message': self.message,
        }


class GameRecommender:
    """Recommendation service wiring the model handle, fallback and store"""

    def __init__(self, config=None, model_handle=None, store=None):
        """Initialize recommendation service

        Args:
            config (dict): Configuration parameters
            model_handle (ModelHandle): Trained model holder, built from config when None
            store (RecommendationStore): Optional store for generated sets
        """
        self.config = config or load_config()
        self.model_handle = model_handle or ModelHandle(self.config['model_dir'], config=self.config)
        self.store = store

    @property
    def top_n(self):
        return int(self.config.get('top_n_recommendations') or 20)

    def train(self, games, interactions, show_progress=False):
        """Retrain and swap in the new artifact"""
        model = train(games, interactions, self.config, self.model_handle.model_dir,
                      show_progress=show_progress)
        self.model_handle.reset()
        return model

    def popular_games(self, games, limit=None):
        return popularity_rank(normalize_games(games), limit or self.top_n)

    def generate(self, user_id, games, interactions):
        """Generate and store a recommendation set for a user

        Falls back to popularity when the user has no interactions, the model
        cannot be loaded, the user is unknown to it, nothing is left to score
        or scoring fails.

        Args:
            user_id: User ID
            games (list): Game catalog snapshot
            interactions (list): Interactions (only the user's are used)

        Returns:
            RecommendationResult: Recommendations with their status
        """
        user_id = str(user_id)
        games = normalize_games(games)
        interactions = [i for i in normalize_interactions(interactions) if i['user_id'] == user_id]

        if not interactions:
            logger.info(f"Cold start for user {user_id}: using popularity-based recommendations")
            return self._finish(user_id, games, None, COLD_START_NO_INTERACTIONS)

        try:
            model = self.model_handle.load()
        except ArtifactUnavailableError:
            logger.info(f"Model unavailable, using popularity-based recommendations for user {user_id}")
            return self._finish(user_id, games, None, COLD_START_MODEL_UNAVAILABLE)

        try:
            recommendations = model.recommend(user_id, games, interactions, n=self.top_n,
                                              timeout=self.config.get('scoring_timeout'))
        except Exception as e:
            logger.error(f"Error generating ML recommendations for user {user_id}: {str(e)}")
            logger.error(traceback.format_exc())
            return self._finish(user_id, games, None, COLD_START_SCORING_FAILED)

        if not recommendations:
            status = (COLD_START_UNKNOWN_USER if model.user_index.index_of(user_id) is None
                      else COLD_START_NO_CANDIDATES)
            logger.info(f"ML returned no results for user {user_id} ({status}), falling back to popularity")
            return self._finish(user_id, games, None, status)

        return self._finish(user_id, games, recommendations[:self.top_n], PERSONALIZED)

    def _finish(self, user_id, games, recommendations, status):
        if recommendations is None:
            recommendations = popularity_rank(games, self.top_n)

        result = RecommendationResult(recommendations, status)
        if self.store is not None:
            try:
                self.store.replace(user_id, recommendations)
                result.persisted = True
            except PersistenceError as e:
                logger.error(f"Error saving recommendations: {str(e)}")
                result.persistence_error = str(e)
        return result

    def stored_recommendations(self, user_id, limit=None):
        if self.store is None:
            return []
        return self.store.get(user_id, limit or self.top_n)
