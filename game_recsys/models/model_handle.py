#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/models/model_handle.py - Lazily loaded model
Author: YourName
Date: 2025-05-06
Description: Owns the trained hybrid model for a serving process, loading it once
"""

import logging
import threading

from .hybrid_model import HybridRecommender
from ..exceptions import ArtifactUnavailableError

logger = logging.getLogger(__name__)


class ModelHandle:
    """Load-once holder of a HybridRecommender artifact

    Concurrent first requests share a single load. Only a successful load
    is kept: after a failure the next request tries the artifact again.
    """

    def __init__(self, model_dir, config=None, device=None):
        self.model_dir = model_dir
        self.config = config
        self.device = device
        self._model = None
        self._lock = threading.Lock()

    def load(self):
        """Return the loaded model, loading it on first use

        Raises:
            ArtifactUnavailableError: The artifact cannot be loaded
        """
        model = self._model
        if model is not None:
            return model

        with self._lock:
            if self._model is not None:
                return self._model

            try:
                self._model = HybridRecommender(config=self.config, device=self.device).load(self.model_dir)
            except ArtifactUnavailableError as e:
                logger.warning(f"Recommendation model unavailable: {str(e)}")
                raise

            return self._model

    def is_loaded(self):
        return self._model is not None

    def score(self, user_id, game):
        """Score one user-game pair, None when either has no index"""
        return self.load().predict(user_id, game)

    def recommend(self, user_id, games, interactions, n=None, timeout=None):
        return self.load().recommend(user_id, games, interactions, n=n, timeout=timeout)

    def reset(self):
        """Drop the cached model so the next request reloads the artifact"""
        with self._lock:
            self._model = None
        logger.info("Model cache cleared")
