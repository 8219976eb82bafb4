#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/evaluation/evaluator.py - Model evaluation module
Author: YourName
Date: 2025-05-06
Description: Validation metrics for the scoring model and offline ranking checks
"""

import logging

import numpy as np
from sklearn.metrics import accuracy_score, log_loss, roc_auc_score

logger = logging.getLogger(__name__)


class RecommenderEvaluator:
    """Evaluator for recommendation models"""

    def __init__(self, threshold=0.5, k_values=None):
        """Initialize evaluator

        Args:
            threshold (float): Score above which a prediction counts as positive
            k_values (list): List of k values for ranking metrics
        """
        self.threshold = threshold
        self.k_values = k_values or [5, 10, 20]
        self.results = None

    def evaluate_validation(self, model, examples):
        """Classification metrics on held-out labeled examples

        Args:
            model (HybridRecommender): Trained model
            examples (TrainingExamples): Validation partition

        Returns:
            dict: loss, accuracy, roc_auc (None with a single class), positives, negatives
        """
        if examples is None or len(examples) == 0:
            logger.warning("No validation examples to evaluate")
            return None

        labels = examples.labels.astype(int)
        scores = np.clip(model.predict_examples(examples), 1e-7, 1 - 1e-7)

        results = {
            'loss': float(log_loss(labels, scores, labels=[0, 1])),
            'accuracy': float(accuracy_score(labels, (scores >= self.threshold).astype(int))),
            'roc_auc': None,
            'positives': examples.num_positive,
            'negatives': examples.num_negative,
        }
        if len(np.unique(labels)) == 2:
            results['roc_auc'] = float(roc_auc_score(labels, scores))

        auc = f"{results['roc_auc']:.4f}" if results['roc_auc'] is not None else 'n/a'
        logger.info(f"Validation - loss: {results['loss']:.4f} - accuracy: {results['accuracy']:.4f} - "
                    f"roc_auc: {auc}")
        self.results = results
        return results

    @staticmethod
    def hit_rate_at_k(recommendations, held_out, k=10):
        """Fraction of held-out games found in the top-k recommendations

        Args:
            recommendations (list): Dicts with gameId, best first
            held_out (iterable): Game IDs the user actually interacted with
            k (int): Cutoff

        Returns:
            float: Hit rate, 0.0 when nothing is held out
        """
        held_out = set(held_out)
        if not held_out:
            return 0.0
        top_k = {rec['gameId'] for rec in recommendations[:k]}
        return len(top_k & held_out) / len(held_out)

    def ranking_report(self, recommendations, held_out):
        """Hit rate for every configured k"""
        return {k: self.hit_rate_at_k(recommendations, held_out, k) for k in self.k_values}
