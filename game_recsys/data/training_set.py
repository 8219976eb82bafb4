#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/data/training_set.py - Training example synthesis
Author: YourName
Date: 2025-05-04
Description: Converts the interaction log into labeled (user, game, features) examples,
             sampling negatives and realizing interaction weights
"""

import logging
import math

import numpy as np
from sklearn.model_selection import train_test_split

from ..exceptions import InsufficientDataError, NoTrainingExamplesError

logger = logging.getLogger(__name__)


class TrainingExamples:
    """Column-wise container of labeled examples"""

    def __init__(self, user_indices, game_indices, features, labels, weights=None):
        self.user_indices = np.asarray(user_indices, dtype=np.int64)
        self.game_indices = np.asarray(game_indices, dtype=np.int64)
        self.features = np.asarray(features, dtype=np.float32)
        self.labels = np.asarray(labels, dtype=np.float32)
        if weights is None:
            weights = np.ones(len(self.labels), dtype=np.float32)
        self.weights = np.asarray(weights, dtype=np.float32)

    def __len__(self):
        return len(self.labels)

    def subset(self, positions):
        return TrainingExamples(self.user_indices[positions], self.game_indices[positions],
                                self.features[positions], self.labels[positions],
                                self.weights[positions])

    @property
    def num_positive(self):
        return int((self.labels == 1).sum())

    @property
    def num_negative(self):
        return int((self.labels == 0).sum())


def round_half_up(value):
    """Round to the nearest integer, halves going up (0.5 -> 1, 1.5 -> 2)"""
    return int(math.floor(value + 0.5))


def check_minimums(games, interactions, config):
    """Validate that the snapshot is large enough to train on

    Raises:
        InsufficientDataError: A minimum is not met
    """
    users = {interaction['user_id'] for interaction in interactions}
    counts = {'games': len(games), 'interactions': len(interactions), 'users': len(users)}
    thresholds = {
        'games': config['min_games'],
        'interactions': config['min_interactions'],
        'users': config['min_users'],
    }

    for key in ('games', 'interactions', 'users'):
        if counts[key] < thresholds[key]:
            message = (f"Insufficient {key}: {counts[key]} < {thresholds[key]}. "
                       f"Need at least {thresholds[key] - counts[key]} more {key} to train.")
            logger.error(message)
            raise InsufficientDataError(message, counts=counts, thresholds=thresholds)

    if counts['users'] == 1:
        logger.warning("Only one user has interactions; the model will be mostly content-based")

    return counts


class TrainingSetSynthesizer:
    """Build labeled examples from games and interactions"""

    def __init__(self, config, random_state=None):
        """Initialize synthesizer

        Args:
            config (dict): Configuration with action_weights, negative_ratio,
                negative_weight and weighting
            random_state (int or np.random.Generator): Seed for sampling and shuffling
        """
        self.action_weights = config['action_weights']
        self.negative_ratio = config['negative_ratio']
        self.negative_weight = config['negative_weight']
        self.weighting = config['weighting']
        self.rng = np.random.default_rng(random_state)
        self.stats = {}

    def synthesize(self, games, interactions, user_index, game_index, feature_map, resolver):
        """Create the shuffled example set

        Args:
            games (list): Normalized games
            interactions (list): Normalized interactions
            user_index (IdIndex): User index
            game_index (IdIndex): Game index (canonical ids)
            feature_map (dict): Game ID to feature vector
            resolver (GameResolver): Resolves interaction game references

        Returns:
            TrainingExamples: Examples in random order
        """
        positives, skipped = self._positive_examples(interactions, user_index, game_index,
                                                     feature_map, resolver)
        if skipped:
            logger.warning(f"Skipped {skipped} interactions that did not resolve to a known user/game")

        if not positives:
            raise NoTrainingExamplesError(
                "No valid training examples created. The game ids in the interactions "
                "do not match any game in the catalog.",
                counts={'positives': 0, 'skipped': skipped})

        interacted = self._interacted_aliases(interactions, resolver)
        negatives = self._negative_examples(len(positives), games, user_index, game_index,
                                            feature_map, interacted)

        rows = self._realize_weights(positives + negatives)
        order = self.rng.permutation(len(rows))
        rows = [rows[i] for i in order]

        examples = TrainingExamples(
            user_indices=[row[0] for row in rows],
            game_indices=[row[1] for row in rows],
            features=np.stack([row[2] for row in rows]),
            labels=[row[3] for row in rows],
            weights=[row[4] for row in rows],
        )

        self.stats = {
            'positives': len(positives),
            'negatives': len(negatives),
            'skipped': skipped,
            'examples': len(examples),
        }
        logger.info(f"Synthesized {len(examples)} examples from {len(positives)} positives "
                    f"and {len(negatives)} negatives")
        return examples

    def _positive_examples(self, interactions, user_index, game_index, feature_map, resolver):
        positives = []
        skipped = 0

        for interaction in interactions:
            user_idx = user_index.index_of(interaction['user_id'])
            game_id = resolver.resolve(interaction['game_id'])
            game_idx = game_index.index_of(game_id) if game_id is not None else None
            features = feature_map.get(game_id) if game_id is not None else None

            if user_idx is None:
                logger.debug(f"User {interaction['user_id']} not found in user index")
            elif game_idx is None:
                logger.debug(f"Game {interaction['game_id']} not found by id or slug")
            elif features is None or len(features) == 0:
                logger.debug(f"Game {game_id} has no features")
            else:
                weight = self.action_weights.get(interaction['action'], 1.0)
                positives.append((user_idx, game_idx, features, 1.0, weight))
                continue
            skipped += 1

        return positives, skipped

    @staticmethod
    def _interacted_aliases(interactions, resolver):
        """User ID to every identifier (raw reference, id, slug) of games they touched"""
        interacted = {}
        for interaction in interactions:
            names = interacted.setdefault(interaction['user_id'], set())
            names.add(interaction['game_id'])
            game_id = resolver.resolve(interaction['game_id'])
            if game_id is not None:
                names.update(resolver.aliases(game_id))
        return interacted

    def _negative_examples(self, num_positive, games, user_index, game_index, feature_map, interacted):
        users = list(user_index.index_to_id)
        if not users or not games:
            return []

        target = min(self.negative_ratio * num_positive, len(games) * len(users))
        max_attempts = target * 10
        negatives = []
        attempts = 0

        while len(negatives) < target and attempts < max_attempts:
            attempts += 1
            user_id = users[self.rng.integers(len(users))]
            game = games[self.rng.integers(len(games))]

            seen = interacted.get(user_id, set())
            if game['id'] in seen or (game.get('slug') and game['slug'] in seen):
                continue

            game_idx = game_index.index_of(game['id'])
            features = feature_map.get(game['id'])
            if game_idx is None or features is None:
                continue

            negatives.append((user_index.index_of(user_id), game_idx, features, 0.0, self.negative_weight))

        if len(negatives) < target:
            logger.info(f"Sampled {len(negatives)} of {target} negative examples")
        return negatives

    def _realize_weights(self, rows):
        if self.weighting == 'sample':
            return rows

        # Duplicate each example round(weight) times, then train unweighted
        weighted = []
        for user_idx, game_idx, features, label, weight in rows:
            for _ in range(round_half_up(weight)):
                weighted.append((user_idx, game_idx, features, label, 1.0))
        return weighted


def split_examples(examples, validation_split=0.2, random_state=None):
    """Shuffle and split examples into train/validation partitions

    Returns:
        tuple: (train, validation); validation is None when it would be empty
    """
    if validation_split <= 0 or len(examples) < 2:
        return examples, None

    positions = np.arange(len(examples))
    train_pos, val_pos = train_test_split(positions, test_size=validation_split,
                                          shuffle=True, random_state=random_state)
    return examples.subset(train_pos), examples.subset(val_pos)
