#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/models/hybrid_model.py - Hybrid recommendation model
Author: YourName
Date: 2025-05-05
Description: Collaborative (user/game embeddings) + content-based (game features)
             neural scorer, its training loop, inference and artifact persistence
"""

import copy
import json
import logging
import os
import shutil
import tempfile
import time
import traceback
from datetime import datetime, timezone

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim
from tqdm import tqdm

from .base_model import BaseRecommenderModel
from ..config import DEFAULT_CONFIG
from ..data.catalog import GameResolver
from ..data.feature_extractor import GameFeatureExtractor
from ..data.indexer import IdIndex
from ..exceptions import ArtifactUnavailableError, ScoringError

logger = logging.getLogger(__name__)

MODEL_FILE = 'model.pt'
METADATA_FILE = 'metadata.json'
GENERIC_REASON = 'Based on your preferences'
SCORING_BATCH_SIZE = 1024


class HybridScoringNetwork(nn.Module):
    """User embedding + game embedding + content features -> interaction likelihood"""

    def __init__(self, num_users, num_games, feature_size, embedding_dim=32,
                 feature_dim=64, hidden_dims=(128, 64, 32), dropout=0.3):
        """Initialize model architecture"""
        super().__init__()
        self.num_users = num_users
        self.num_games = num_games
        self.feature_size = feature_size

        self.user_embedding = nn.Embedding(num_users, embedding_dim)
        self.game_embedding = nn.Embedding(num_games, embedding_dim)
        self.feature_norm = nn.Sequential(
            nn.Linear(feature_size, feature_dim),
            nn.ReLU()
        )

        # Dropout follows every hidden layer except the last one
        layers = []
        input_dim = embedding_dim * 2 + feature_dim
        for i, hidden_dim in enumerate(hidden_dims):
            layers.append(nn.Linear(input_dim, hidden_dim))
            layers.append(nn.ReLU())
            if i < len(hidden_dims) - 1:
                layers.append(nn.Dropout(dropout))
            input_dim = hidden_dim
        self.hidden_layers = nn.Sequential(*layers)

        self.output = nn.Linear(input_dim, 1)
        self.sigmoid = nn.Sigmoid()

    def forward(self, user_indices, game_indices, features):
        """Forward pass

        Args:
            user_indices: Long tensor of shape (batch_size,)
            game_indices: Long tensor of shape (batch_size,)
            features: Float tensor of shape (batch_size, feature_size)

        Returns:
            tensor: Predicted scores (0-1) of shape (batch_size,)
        """
        user_vec = self.user_embedding(user_indices)
        game_vec = self.game_embedding(game_indices)
        feature_vec = self.feature_norm(features)

        x = torch.cat([user_vec, game_vec, feature_vec], dim=1)
        x = self.hidden_layers(x)
        x = self.sigmoid(self.output(x))

        return x.squeeze(-1)


def recommendation_reason(game):
    """Human readable reason for recommending a game"""
    genres = [genre['name'] for genre in (game.get('genres') or [])[:2]]
    if genres:
        return f"Similar genres: {', '.join(genres)}"
    return GENERIC_REASON


class HybridRecommender(BaseRecommenderModel):
    """Trained scoring network together with its indices and feature vocabularies"""

    def __init__(self, feature_extractor=None, user_index=None, game_index=None,
                 config=None, device=None):
        """Initialize hybrid recommender

        Args:
            feature_extractor (GameFeatureExtractor): Vocabularies used for encoding
            user_index (IdIndex): User ID index
            game_index (IdIndex): Game ID index
            config (dict): Configuration parameters
            device (torch.device): Device for the network
        """
        self.config = copy.deepcopy(DEFAULT_CONFIG)
        if config:
            self.config.update(config)
        # Keys the caller set keep precedence over the artifact's serving settings
        self._config_overrides = set(config or {})

        self.feature_extractor = feature_extractor
        self.user_index = user_index
        self.game_index = game_index
        self.device = device or torch.device(
            'cuda' if self.config.get('use_gpu') and torch.cuda.is_available() else 'cpu')
        self.network = None
        self.training_history = {'loss': [], 'accuracy': [], 'val_loss': [], 'val_accuracy': []}
        self.metadata = {}
        self.trained_at = None

    @property
    def top_n(self):
        return int(self.config.get('top_n_recommendations') or 20)

    def _build_network(self):
        return HybridScoringNetwork(
            num_users=len(self.user_index),
            num_games=len(self.game_index),
            feature_size=self.feature_extractor.feature_size,
            embedding_dim=self.config['embedding_dim'],
            feature_dim=self.config['feature_dim'],
            hidden_dims=tuple(self.config['hidden_dims']),
            dropout=self.config['dropout'],
        ).to(self.device)

    def _to_tensors(self, examples):
        return (
            torch.as_tensor(examples.user_indices, dtype=torch.long, device=self.device),
            torch.as_tensor(examples.game_indices, dtype=torch.long, device=self.device),
            torch.as_tensor(examples.features, dtype=torch.float32, device=self.device),
            torch.as_tensor(examples.labels, dtype=torch.float32, device=self.device),
            torch.as_tensor(examples.weights, dtype=torch.float32, device=self.device),
        )

    def fit(self, data, validation_data=None, show_progress=False):
        """Train the network from scratch

        Args:
            data (TrainingExamples): Training partition
            validation_data (TrainingExamples): Optional validation partition
            show_progress (bool): Show a progress bar over epochs

        Returns:
            self: Trained model
        """
        logger.info(f"Training hybrid model on {len(data)} examples "
                    f"({len(self.user_index)} users, {len(self.game_index)} games, "
                    f"{self.feature_extractor.feature_size} features)")

        if len(data) == 0:
            raise ValueError("No training examples available")

        try:
            if self.config.get('random_seed') is not None:
                torch.manual_seed(self.config['random_seed'])

            self.network = self._build_network()
            optimizer = optim.Adam(self.network.parameters(), lr=self.config['learning_rate'])
            criterion = nn.BCELoss(reduction='none')
            batch_size = self.config['batch_size']
            epochs = self.config['epochs']

            users, games, features, labels, weights = self._to_tensors(data)
            val_tensors = self._to_tensors(validation_data) if validation_data is not None and len(validation_data) else None
            num_examples = len(labels)

            for epoch in tqdm(range(epochs), desc='Training', disable=not show_progress):
                self.network.train()
                total_loss = 0.0
                correct = 0

                indices = torch.randperm(num_examples, device=self.device)
                for i in range(0, num_examples, batch_size):
                    batch = indices[i:i + batch_size]

                    optimizer.zero_grad()
                    outputs = self.network(users[batch], games[batch], features[batch])

                    batch_weights = weights[batch]
                    loss = (criterion(outputs, labels[batch]) * batch_weights).sum() / batch_weights.sum()
                    loss.backward()
                    optimizer.step()

                    total_loss += loss.item() * len(batch)
                    correct += ((outputs >= 0.5).float() == labels[batch]).sum().item()

                epoch_loss = total_loss / num_examples
                epoch_acc = correct / num_examples
                self.training_history['loss'].append(epoch_loss)
                self.training_history['accuracy'].append(epoch_acc)

                message = f"Epoch {epoch + 1}/{epochs} - loss: {epoch_loss:.4f} - accuracy: {epoch_acc:.4f}"
                if val_tensors is not None:
                    val_loss, val_acc = self._evaluate_tensors(val_tensors, criterion)
                    self.training_history['val_loss'].append(val_loss)
                    self.training_history['val_accuracy'].append(val_acc)
                    message += f" - val_loss: {val_loss:.4f} - val_acc: {val_acc:.4f}"
                logger.info(message)

            self.network.eval()
            self.trained_at = datetime.now(timezone.utc).isoformat()
            return self

        except Exception as e:
            logger.error(f"Error training hybrid model: {str(e)}")
            logger.error(traceback.format_exc())
            self.network = None
            raise

    def _evaluate_tensors(self, tensors, criterion):
        users, games, features, labels, weights = tensors
        self.network.eval()
        with torch.no_grad():
            outputs = self.network(users, games, features)
            loss = (criterion(outputs, labels) * weights).sum() / weights.sum()
            accuracy = ((outputs >= 0.5).float() == labels).float().mean()
        return loss.item(), accuracy.item()

    def _check_ready(self):
        if self.network is None:
            raise ScoringError("Model has not been trained or loaded")

    def _score(self, user_indices, game_indices, features):
        """Batched forward pass, returns a numpy array of scores"""
        self._check_ready()
        self.network.eval()
        scores = []
        with torch.no_grad():
            for i in range(0, len(game_indices), SCORING_BATCH_SIZE):
                users = torch.as_tensor(user_indices[i:i + SCORING_BATCH_SIZE], dtype=torch.long, device=self.device)
                games = torch.as_tensor(game_indices[i:i + SCORING_BATCH_SIZE], dtype=torch.long, device=self.device)
                feats = torch.as_tensor(features[i:i + SCORING_BATCH_SIZE], dtype=torch.float32, device=self.device)
                scores.append(self.network(users, games, feats).cpu().numpy())
        if not scores:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(scores)

    def predict_examples(self, examples):
        """Scores for a set of labeled examples"""
        return self._score(examples.user_indices, examples.game_indices, examples.features)

    def predict(self, user_id, game):
        """Predict interaction likelihood for a user-game pair

        Args:
            user_id: User ID
            game (dict): Normalized game record

        Returns:
            float: Score in [0, 1], or None when the user or game has no index
        """
        user_idx = self.user_index.index_of(user_id)
        game_idx = self.game_index.index_of(game['id'])
        if user_idx is None or game_idx is None:
            return None

        features = self.feature_extractor.encode(game)[np.newaxis, :]
        return float(self._score(np.array([user_idx]), np.array([game_idx]), features)[0])

    def recommend(self, user_id, games, interactions, n=None, timeout=None):
        """Score every game the user has not interacted with

        Args:
            user_id: User ID
            games (list): Normalized game catalog
            interactions (list): The user's interactions
            n (int): Number of recommendations, defaults to the trained configuration
            timeout (float): Seconds allowed for candidate preparation and scoring

        Returns:
            list: Dicts with gameId, score and reason, best first. Empty when the
                user is unknown to the model or no candidate remains.

        Raises:
            ScoringError: Inference failed or exceeded the timeout
        """
        n = n or self.top_n
        started = time.monotonic()

        user_idx = self.user_index.index_of(user_id)
        if user_idx is None:
            logger.info(f"User {user_id} is unknown to the trained model")
            return []

        resolver = GameResolver(games)
        interacted = set()
        for interaction in interactions:
            interacted.add(interaction['game_id'])
            game_id = resolver.resolve(interaction['game_id'])
            if game_id is not None:
                interacted.update(resolver.aliases(game_id))

        candidates = [game for game in games if game['id'] not in interacted]
        if not candidates:
            return []

        scored_games = []
        game_indices = []
        features = []
        for game in candidates:
            if timeout is not None and time.monotonic() - started > timeout:
                raise ScoringError(f"Scoring exceeded {timeout}s after {len(scored_games)} candidates")

            game_idx = self.game_index.index_of(game['id'])
            if game_idx is None:
                continue
            try:
                vector = self.feature_extractor.encode(game)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping game {game['id']}: {str(e)}")
                continue

            scored_games.append(game)
            game_indices.append(game_idx)
            features.append(vector)

        if not scored_games:
            return []

        try:
            scores = self._score(np.full(len(game_indices), user_idx),
                                 np.array(game_indices),
                                 np.stack(features))
        except ScoringError:
            raise
        except Exception as e:
            raise ScoringError(f"Model inference failed: {str(e)}") from e

        if timeout is not None and time.monotonic() - started > timeout:
            raise ScoringError(f"Scoring exceeded {timeout}s")

        order = np.argsort(-scores, kind='stable')[:n]
        return [{
            'gameId': scored_games[i]['id'],
            'score': float(np.clip(scores[i], 0.0, 1.0)),
            'reason': recommendation_reason(scored_games[i]),
        } for i in order]

    def build_metadata(self):
        """Metadata document written next to the network weights"""
        user_to_index, index_to_user = self.user_index.to_mappings()
        game_to_index, index_to_game = self.game_index.to_mappings()

        metadata = copy.deepcopy(self.metadata)
        metadata.update({
            'gameIdToIndex': game_to_index,
            'userIdToIndex': user_to_index,
            'indexToGameId': index_to_game,
            'indexToUserId': index_to_user,
            'featureSize': self.feature_extractor.feature_size,
            'numUsers': len(self.user_index),
            'numGames': len(self.game_index),
            'config': dict(metadata.get('config') or {}, **self.config),
            'trainedAt': self.trained_at or datetime.now(timezone.utc).isoformat(),
        })
        metadata.update(self.feature_extractor.to_metadata())
        metadata['config']['topNRecommendations'] = self.top_n
        metadata['trainingHistory'] = self.training_history
        return metadata

    def save(self, path):
        """Save network weights and metadata

        The artifact is written to a temporary directory first and swapped
        in place, so an interrupted save leaves any previous artifact intact.

        Args:
            path (str): Directory path

        Returns:
            bool: Success
        """
        logger.info(f"Saving hybrid model to {path}")
        if self.network is None:
            raise ValueError("No trained network to save")

        path = os.path.abspath(path)
        parent = os.path.dirname(path)
        os.makedirs(parent, exist_ok=True)
        tmp_dir = tempfile.mkdtemp(prefix='.tmp-model-', dir=parent)

        try:
            torch.save(self.network.state_dict(), os.path.join(tmp_dir, MODEL_FILE))
            with open(os.path.join(tmp_dir, METADATA_FILE), 'w') as f:
                json.dump(self.build_metadata(), f, indent=2)

            if os.path.exists(path):
                old_dir = path + '.old'
                if os.path.exists(old_dir):
                    shutil.rmtree(old_dir)
                os.rename(path, old_dir)
                os.rename(tmp_dir, path)
                shutil.rmtree(old_dir)
            else:
                os.rename(tmp_dir, path)

            logger.info("Hybrid model saved successfully")
            return True

        except Exception as e:
            logger.error(f"Error saving hybrid model: {str(e)}")
            logger.error(traceback.format_exc())
            shutil.rmtree(tmp_dir, ignore_errors=True)
            raise

    @staticmethod
    def load_metadata(path):
        """Read the metadata document of an artifact

        Raises:
            ArtifactUnavailableError: Missing or unreadable metadata
        """
        metadata_path = os.path.join(path, METADATA_FILE)
        try:
            with open(metadata_path, 'r') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise ArtifactUnavailableError(f"Cannot read model metadata at {metadata_path}: {e}") from e

    def load(self, path):
        """Load network weights and metadata

        Args:
            path (str): Directory path

        Returns:
            self: Loaded model

        Raises:
            ArtifactUnavailableError: The artifact is missing or inconsistent
        """
        logger.info(f"Loading hybrid model from {path}")
        metadata = self.load_metadata(path)

        try:
            saved_config = dict(metadata.get('config') or {})
            if 'top_n_recommendations' not in saved_config and 'topNRecommendations' in saved_config:
                saved_config['top_n_recommendations'] = saved_config['topNRecommendations']
            for key in ('embedding_dim', 'feature_dim', 'hidden_dims', 'dropout'):
                if key in saved_config:
                    self.config[key] = saved_config[key]
            if 'top_n_recommendations' in saved_config and 'top_n_recommendations' not in self._config_overrides:
                self.config['top_n_recommendations'] = saved_config['top_n_recommendations']

            self.user_index = IdIndex.from_mapping(metadata['userIdToIndex'])
            self.game_index = IdIndex.from_mapping(metadata['gameIdToIndex'])
            self.feature_extractor = GameFeatureExtractor.from_metadata(metadata)
        except (KeyError, TypeError, ValueError) as e:
            raise ArtifactUnavailableError(f"Invalid model metadata in {path}: {e}") from e

        expected = {
            'featureSize': self.feature_extractor.feature_size,
            'numUsers': len(self.user_index),
            'numGames': len(self.game_index),
        }
        for key, value in expected.items():
            if key in metadata and int(metadata[key]) != value:
                raise ArtifactUnavailableError(
                    f"Model metadata {key}={metadata[key]} does not match its vocabularies ({value})")

        model_path = os.path.join(path, MODEL_FILE)
        if not os.path.exists(model_path):
            raise ArtifactUnavailableError(f"Model weights not found at {model_path}")

        try:
            network = self._build_network()
            state_dict = torch.load(model_path, map_location=self.device, weights_only=True)
            network.load_state_dict(state_dict)
        except Exception as e:
            logger.error(traceback.format_exc())
            raise ArtifactUnavailableError(f"Cannot load model weights from {model_path}: {e}") from e

        network.eval()
        self.network = network
        self.metadata = metadata
        self.trained_at = metadata.get('trainedAt')
        self.training_history = metadata.get('trainingHistory', self.training_history)

        logger.info(f"Hybrid model loaded ({len(self.user_index)} users, {len(self.game_index)} games, "
                    f"trained at {self.trained_at})")
        return self
