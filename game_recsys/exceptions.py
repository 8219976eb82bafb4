#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/exceptions.py - Error types
Author: YourName
Date: 2025-05-02
Description: Failure reasons surfaced by training and the recommendation service
"""


class RecommenderError(Exception):
    """Base class for recommender failures"""


class InsufficientDataError(RecommenderError):
    """Not enough games, interactions or users to train a model"""

    def __init__(self, message, counts=None, thresholds=None):
        super().__init__(message)
        self.counts = counts or {}
        self.thresholds = thresholds or {}


class NoTrainingExamplesError(InsufficientDataError):
    """No interaction resolved to a known user and game"""


class ArtifactUnavailableError(RecommenderError):
    """Trained model or its metadata could not be located or deserialized"""


class ScoringError(RecommenderError):
    """Model inference failed"""


class PersistenceError(RecommenderError):
    """Recommendation set could not be written to the store"""
