#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/models/base_model.py - Base model class for the game recommender
Author: YourName
Date: 2025-05-04
Description: Defines the abstract base class shared by recommendation models
"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class BaseRecommenderModel(ABC):
    """Abstract base class for all recommendation models"""

    @abstractmethod
    def fit(self, data):
        """Train the model with provided data"""
        pass

    @abstractmethod
    def predict(self, user_id, game):
        """Predict a relevance score for a user-game pair"""
        pass

    @abstractmethod
    def recommend(self, user_id, games, interactions, n=20):
        """Generate top-N recommendations for a user"""
        pass

    @abstractmethod
    def save(self, path):
        """Save model to disk"""
        pass

    @abstractmethod
    def load(self, path):
        """Load model from disk"""
        pass
