#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/main.py - Main entry point for the game recommender
Author: YourName
Date: 2025-05-08
Description: Command-line interface to train, query and serve the recommender
"""

import argparse
import logging
import sys

from game_recsys.api.app import create_app
from game_recsys.config import load_config, setup_logging
from game_recsys.data.catalog import RecommendationStore, load_games, load_interactions
from game_recsys.exceptions import InsufficientDataError
from game_recsys.recommender import GameRecommender

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Game Recommendation System')
    parser.add_argument('--mode', type=str, default='train',
                        choices=['train', 'recommend', 'serve'],
                        help='Operation mode')
    parser.add_argument('--games', type=str, default=None, help='Game catalog file (JSON or CSV)')
    parser.add_argument('--interactions', type=str, default=None, help='Interactions file (JSON or CSV)')
    parser.add_argument('--model-dir', type=str, default=None, help='Model artifact directory')
    parser.add_argument('--config', type=str, default=None, help='Configuration file path')
    parser.add_argument('--store', type=str, default=None, help='CSV file for generated recommendations')
    parser.add_argument('--user', type=str, default=None, help='User ID for recommend mode')
    parser.add_argument('--top-n', type=int, default=None, help='Number of recommendations')
    parser.add_argument('--epochs', type=int, default=None, help='Training epochs')
    parser.add_argument('--batch-size', type=int, default=None, help='Training batch size')
    parser.add_argument('--learning-rate', type=float, default=None, help='Adam learning rate')
    parser.add_argument('--host', type=str, default='127.0.0.1', help='Host for serve mode')
    parser.add_argument('--port', type=int, default=5000, help='Port for serve mode')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point"""
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = load_config(args.config, overrides={
        'model_dir': args.model_dir,
        'top_n_recommendations': args.top_n,
        'epochs': args.epochs,
        'batch_size': args.batch_size,
        'learning_rate': args.learning_rate,
    })

    if not args.games:
        logger.error("A game catalog file is required (--games)")
        return 1

    store = RecommendationStore(args.store) if args.store else None
    recommender = GameRecommender(config, store=store)

    if args.mode == 'train':
        if not args.interactions:
            logger.error("Training requires an interactions file (--interactions)")
            return 1
        try:
            recommender.train(load_games(args.games), load_interactions(args.interactions), show_progress=True)
        except InsufficientDataError as e:
            logger.error(f"Training failed: {str(e)}")
            return 1
        logger.info(f"Model saved to {config['model_dir']}")

    elif args.mode == 'recommend':
        if not args.user:
            logger.error("Recommend mode requires --user")
            return 1
        interactions = load_interactions(args.interactions) if args.interactions else []
        result = recommender.generate(args.user, load_games(args.games), interactions)

        print(f"\n{result.message}")
        for i, rec in enumerate(result.recommendations, 1):
            print(f"{i}. {rec['gameId']} (Score: {rec['score']:.4f}) - {rec['reason']}")
        if result.persistence_error:
            logger.error(f"Recommendations were not stored: {result.persistence_error}")
            return 1

    elif args.mode == 'serve':
        games_path = args.games
        interactions_path = args.interactions

        def games_loader():
            return load_games(games_path)

        def interactions_loader(user_id):
            if not interactions_path:
                return []
            return [i for i in load_interactions(interactions_path) if i['user_id'] == str(user_id)]

        app = create_app(recommender, games_loader, interactions_loader)
        app.run(host=args.host, port=args.port)

    return 0


if __name__ == "__main__":
    sys.exit(main())
