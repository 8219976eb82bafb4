#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
game_recsys/data/indexer.py - Dense identifier index
Author: YourName
Date: 2025-05-03
Description: Maps user/game identifiers to contiguous embedding indices
"""

import logging

logger = logging.getLogger(__name__)


class IdIndex:
    """Bijective map between identifiers and indices in [0, count)"""

    def __init__(self):
        self.id_to_index = {}
        self.index_to_id = []

    def add(self, identifier):
        """Register an identifier, returning its index"""
        index = self.id_to_index.get(identifier)
        if index is None:
            index = len(self.index_to_id)
            self.id_to_index[identifier] = index
            self.index_to_id.append(identifier)
        return index

    def index_of(self, identifier):
        """Index of an identifier, None when it was never registered"""
        return self.id_to_index.get(identifier)

    def id_of(self, index):
        if 0 <= index < len(self.index_to_id):
            return self.index_to_id[index]
        return None

    def __len__(self):
        return len(self.index_to_id)

    def __contains__(self, identifier):
        return identifier in self.id_to_index

    def to_mappings(self):
        """JSON-friendly (id -> index, index -> id) dicts"""
        return (dict(self.id_to_index),
                {str(i): identifier for i, identifier in enumerate(self.index_to_id)})

    @classmethod
    def from_mapping(cls, id_to_index):
        """Rebuild an index from a saved id -> index mapping

        Raises:
            ValueError: Indices are not contiguous from zero
        """
        index = cls()
        ordered = sorted(id_to_index.items(), key=lambda item: int(item[1]))
        for expected, (identifier, position) in enumerate(ordered):
            if int(position) != expected:
                raise ValueError(f"Index mapping is not contiguous at {identifier} -> {position}")
            index.add(identifier)
        return index


def build_index(ids):
    """Index identifiers in first-seen order

    Args:
        ids (iterable): Identifiers, duplicates allowed

    Returns:
        IdIndex: Dense index
    """
    index = IdIndex()
    for identifier in ids:
        index.add(identifier)
    return index
