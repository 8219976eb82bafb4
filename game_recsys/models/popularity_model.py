#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/models/popularity_model.py - Popularity-based recommendation model
Author: YourName
Date: 2025-05-05
Description: Non-personalized ranking used for cold-start users and whenever the
             trained model cannot serve a request
"""

import logging
import os
import pickle
import traceback

from .base_model import BaseRecommenderModel

logger = logging.getLogger(__name__)

POPULAR_REASON = 'Popular game with high ratings'


class PopularityModel(BaseRecommenderModel):
    """Rank games by rating x average playtime"""

    def __init__(self):
        self.popular_items = []

    def fit(self, data):
        """Rank a game catalog

        Args:
            data (list): Normalized game records

        Returns:
            self: Fitted model
        """
        logger.info(f"Ranking {len(data)} games by popularity...")

        # sorted() is stable: ties keep catalog order
        ranked = sorted(data, key=self._popularity, reverse=True)
        self.popular_items = [(game['id'], self._score(game)) for game in ranked]
        return self

    @staticmethod
    def _popularity(game):
        return (game.get('rating') or 0) * (game.get('playtime') or 0)

    @staticmethod
    def _score(game):
        # Reported score is the normalized rating only; playtime affects ordering
        rating = game.get('rating') or 0
        return min(max(rating / 5.0, 0.0), 1.0)

    def predict(self, user_id, game):
        """Popularity score of a game, independent of the user"""
        return self._score(game)

    def recommend(self, user_id=None, games=None, interactions=None, n=20):
        """Top-N popular games

        Args:
            user_id: Ignored, popularity is not personalized
            games (list): Optional catalog to rank instead of the fitted one
            interactions (list): Ignored
            n (int): Number of recommendations

        Returns:
            list: Dicts with gameId, score and reason
        """
        if games is not None:
            self.fit(games)

        return [{
            'gameId': game_id,
            'score': score,
            'reason': POPULAR_REASON,
        } for game_id, score in self.popular_items[:n]]

    def save(self, path):
        """Save model to disk

        Args:
            path (str): Directory path

        Returns:
            bool: Success
        """
        logger.info(f"Saving popularity model to {path}")

        try:
            os.makedirs(path, exist_ok=True)
            model_data = {
                'popular_items': self.popular_items,
            }
            with open(os.path.join(path, 'popularity_model.pkl'), 'wb') as f:
                pickle.dump(model_data, f)

            logger.info("Popularity model saved successfully")
            return True
        except Exception as e:
            logger.error(f"Error saving popularity model: {str(e)}")
            logger.error(traceback.format_exc())
            return False

    def load(self, path):
        """Load model from disk

        Args:
            path (str): Directory path

        Returns:
            self: Loaded model
        """
        logger.info(f"Loading popularity model from {path}")

        with open(os.path.join(path, 'popularity_model.pkl'), 'rb') as f:
            model_data = pickle.load(f)

        self.popular_items = model_data['popular_items']

        logger.info("Popularity model loaded successfully")
        return self


def popularity_rank(games, limit=20):
    """Popularity recommendations for a catalog snapshot"""
    return PopularityModel().fit(games).recommend(n=limit)
