#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/data/feature_extractor.py - Game content features
Author: YourName
Date: 2025-05-03
Description: Builds genre/tag vocabularies from the catalog and encodes games into
             fixed-length numeric vectors
"""

import logging
import math
from datetime import datetime

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

BASE_YEAR = 1990
NEUTRAL = 0.5
# rating, metacritic, playtime, release year
NUM_SCALAR_FEATURES = 4


class GameFeatureExtractor:
    """Encode games as [genre one-hot | tag one-hot | rating | metacritic | playtime | year]"""

    def __init__(self, genre_list=None, tag_list=None, platform_list=None,
                 top_tag_count=20, current_year=None):
        """Initialize feature extractor

        Args:
            genre_list (list): Genre vocabulary
            tag_list (list): Tag vocabulary
            platform_list (list): Platform vocabulary, recorded but not encoded
            top_tag_count (int): Number of tags kept when building the vocabulary
            current_year (int): Year used to normalize release dates
        """
        self.genre_list = list(genre_list or [])
        self.tag_list = list(tag_list or [])
        self.platform_list = list(platform_list or [])
        self.top_tag_count = top_tag_count
        self.current_year = current_year or datetime.now().year
        self._genre_positions = {}
        self._tag_positions = {}
        self._index_vocabularies()

    def _index_vocabularies(self):
        self._genre_positions = {name: i for i, name in enumerate(self.genre_list)}
        self._tag_positions = {name: i for i, name in enumerate(self.tag_list)}

    @property
    def feature_size(self):
        return len(self.genre_list) + len(self.tag_list) + NUM_SCALAR_FEATURES

    def build_vocabularies(self, games):
        """Collect vocabularies from the full catalog

        Genres are kept in first-seen order. Tags are the first `top_tag_count`
        distinct tags encountered while scanning the catalog.

        Args:
            games (list): Normalized game records

        Returns:
            dict: genre_list, tag_list and platform_list
        """
        genres = {}
        tags = {}
        platforms = {}

        for game in games:
            for genre in game.get('genres') or []:
                genres.setdefault(genre['name'], None)
            for tag in game.get('tags') or []:
                tags.setdefault(tag['name'], None)
            for platform in game.get('platforms') or []:
                platforms.setdefault(platform['name'], None)

        self.genre_list = list(genres)
        self.tag_list = list(tags)[:self.top_tag_count]
        self.platform_list = list(platforms)
        self._index_vocabularies()

        logger.info(f"Vocabularies built: {len(self.genre_list)} genres, "
                    f"{len(self.tag_list)} tags (of {len(tags)}), {len(self.platform_list)} platforms")

        return {
            'genre_list': self.genre_list,
            'tag_list': self.tag_list,
            'platform_list': self.platform_list,
        }

    def encode(self, game):
        """Encode one game

        Categories outside the vocabulary are ignored, missing scalar
        fields fall back to 0.5.

        Args:
            game (dict): Normalized game record

        Returns:
            np.ndarray: float32 vector of length `feature_size`
        """
        vector = np.zeros(self.feature_size, dtype=np.float32)

        for genre in game.get('genres') or []:
            pos = self._genre_positions.get(genre['name'])
            if pos is not None:
                vector[pos] = 1.0

        offset = len(self.genre_list)
        for tag in game.get('tags') or []:
            pos = self._tag_positions.get(tag['name'])
            if pos is not None:
                vector[offset + pos] = 1.0

        offset += len(self.tag_list)
        vector[offset] = self._rating(game.get('rating'))
        vector[offset + 1] = self._metacritic(game.get('metacritic'))
        vector[offset + 2] = self._playtime(game.get('playtime'))
        vector[offset + 3] = self._release_year(game.get('released'))

        return vector

    def encode_many(self, games):
        """Encode a list of games

        Returns:
            dict: Game ID to feature vector
        """
        return {game['id']: self.encode(game) for game in games}

    # Zero is treated like a missing value, as in the catalog data
    @staticmethod
    def _rating(rating):
        return _clip(rating / 5.0) if rating else NEUTRAL

    @staticmethod
    def _metacritic(score):
        return _clip(score / 100.0) if score else NEUTRAL

    @staticmethod
    def _playtime(hours):
        if not hours or hours < 0:
            return NEUTRAL
        return _clip(math.log10(hours + 1) / math.log10(101))

    def _release_year(self, released):
        if not released:
            return NEUTRAL
        date = pd.to_datetime(released, errors='coerce')
        if pd.isna(date) or self.current_year <= BASE_YEAR:
            return NEUTRAL
        return _clip((date.year - BASE_YEAR) / (self.current_year - BASE_YEAR))

    def to_metadata(self):
        return {
            'genreList': self.genre_list,
            'tagList': self.tag_list,
            'platformList': self.platform_list,
        }

    @classmethod
    def from_metadata(cls, metadata):
        """Rebuild an extractor from saved artifact metadata"""
        return cls(genre_list=metadata.get('genreList', []),
                   tag_list=metadata.get('tagList', []),
                   platform_list=metadata.get('platformList', []),
                   top_tag_count=len(metadata.get('tagList', [])))


def _clip(value):
    return float(min(max(value, 0.0), 1.0))
