#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/api/app.py - Flask API for the game recommender
Author: YourName
Date: 2025-05-08
Description: JSON endpoints to generate, read and rank recommendations
"""

import logging
import traceback

import numpy as np
from flask import Flask, jsonify, request
from flask_cors import CORS

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)


def convert_numpy_types(obj):
    """Convert NumPy values to plain Python types for JSON"""
    if isinstance(obj, dict):
        return {k: convert_numpy_types(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_numpy_types(v) for v in obj]
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    return obj


def _error(message, status, details=None):
    body = {'success': False, 'error': message}
    if details:
        body['details'] = details
    return jsonify(body), status


def _ok(data):
    return jsonify({'success': True, 'data': convert_numpy_types(data)})


def create_app(recommender, games_loader, interactions_loader):
    """Create the Flask application

    Args:
        recommender (GameRecommender): Recommendation service
        games_loader (callable): Returns the current game catalog snapshot
        interactions_loader (callable): Returns interactions, optionally for one user ID

    Returns:
        Flask: Application
    """
    app = Flask(__name__)
    CORS(app)

    @app.route('/api/health', methods=['GET'])
    def health_check():
        return _ok({
            'status': 'ok',
            'modelLoaded': recommender.model_handle.is_loaded(),
        })

    @app.route('/api/recommendations/generate', methods=['POST'])
    def generate_recommendations():
        payload = request.get_json(silent=True) or {}
        user_id = payload.get('user_id') or request.args.get('user_id')
        if not user_id:
            return _error('user_id is required', 400)

        try:
            games = games_loader()
            if not games:
                return _error('No games available', 404)
            interactions = interactions_loader(user_id)
        except Exception as e:
            logger.error(f"Error loading catalog: {str(e)}")
            logger.error(traceback.format_exc())
            return _error('Failed to load games or interactions', 500, str(e))

        result = recommender.generate(user_id, games, interactions)
        if result.persistence_error:
            return _error('Failed to save recommendations', 500, result.persistence_error)

        data = result.to_dict()
        data['recommendations'] = data['recommendations'][:recommender.top_n]
        return _ok(data)

    @app.route('/api/recommendations', methods=['GET'])
    def get_recommendations():
        user_id = request.args.get('user_id')
        if not user_id:
            return _error('user_id is required', 400)

        try:
            recommendations = recommender.stored_recommendations(user_id)
        except PersistenceError as e:
            logger.error(f"Error fetching recommendations: {str(e)}")
            return _error('Failed to fetch recommendations', 500)

        if not recommendations:
            return _ok({
                'recommendations': [],
                'isColdStart': True,
                'message': 'No recommendations yet. Click "Generate Recommendations" to get started!',
            })

        return _ok({
            'recommendations': recommendations,
            'count': len(recommendations),
            'isColdStart': False,
        })

    @app.route('/api/popular-games', methods=['GET'])
    def get_popular_games():
        limit = request.args.get('limit', default=recommender.top_n, type=int)
        try:
            games = games_loader()
        except Exception as e:
            logger.error(f"Error loading catalog: {str(e)}")
            logger.error(traceback.format_exc())
            return _error('Failed to load games', 500, str(e))

        return _ok({'recommendations': recommender.popular_games(games, limit)})

    return app
