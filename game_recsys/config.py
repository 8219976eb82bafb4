#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/config.py - Configuration for the game recommender
Author: YourName
Date: 2025-05-02
Description: Default training/serving parameters and helpers to load overrides
"""

import copy
import json
import logging
import os

import torch

logger = logging.getLogger(__name__)

DEFAULT_MODEL_DIR = os.path.join('models', 'recommendation-model')

DEFAULT_CONFIG = {
    # Training
    'epochs': 50,
    'batch_size': 32,
    'learning_rate': 0.001,
    'validation_split': 0.2,
    'random_seed': None,

    # Minimum data required before a model is trained
    'min_games': 50,
    'min_interactions': 10,
    'min_users': 1,  # single-user training is content-based only

    # Feature encoding
    'top_tag_count': 20,

    # Network
    'embedding_dim': 32,
    'feature_dim': 64,
    'hidden_dims': [128, 64, 32],
    'dropout': 0.3,

    # Training set synthesis
    'negative_ratio': 2,
    'weighting': 'duplicate',  # or 'sample' for per-example loss weights
    'action_weights': {
        'favorite': 1.5,
        'played': 1.2,
        'like': 1.0,
    },
    'negative_weight': 0.5,

    # Serving
    'top_n_recommendations': 20,
    'scoring_timeout': None,
    'model_dir': DEFAULT_MODEL_DIR,
    'use_gpu': torch.cuda.is_available(),
}


def setup_logging(level=logging.INFO):
    """Set up logging configuration"""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def load_config(path=None, overrides=None):
    """Build a configuration dict

    Args:
        path (str): Optional JSON file with overrides
        overrides (dict): Explicit overrides, applied last

    Returns:
        dict: Configuration
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if path and os.path.exists(path):
        logger.info(f"Loading configuration from {path}")
        with open(path, 'r') as f:
            file_config = json.load(f)
        _merge(config, file_config)
    elif path:
        logger.warning(f"Configuration file {path} not found, using defaults")

    if overrides:
        _merge(config, {k: v for k, v in overrides.items() if v is not None})

    if config['weighting'] not in ('duplicate', 'sample'):
        raise ValueError(f"Unknown weighting mode: {config['weighting']}")

    return config


def _merge(config, updates):
    for key, value in updates.items():
        if key not in DEFAULT_CONFIG:
            logger.debug(f"Unrecognised config key '{key}' kept as-is")
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
