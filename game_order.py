# game_order.py
# -*- coding: utf-8 -*-
"""
Reordering of the games list.

The new order is computed locally and sent whole to the backend; the local
order only changes once the backend answers with the new configuration.
"""

import logging
from typing import List, Optional

from app_state import AppState
from models import AppConfig
from save_backend import BackendError, SaveBackend


def move_up(names: List[str], name: str) -> Optional[List[str]]:
    """Swap ``name`` with the previous entry. None when it is first or unknown."""
    if name not in names:
        return None
    index = names.index(name)
    if index == 0:
        return None
    order = list(names)
    order[index - 1], order[index] = order[index], order[index - 1]
    return order


def move_down(names: List[str], name: str) -> Optional[List[str]]:
    """Swap ``name`` with the next entry. None when it is last or unknown."""
    if name not in names:
        return None
    index = names.index(name)
    if index == len(names) - 1:
        return None
    order = list(names)
    order[index], order[index + 1] = order[index + 1], order[index]
    return order


def pin_to_top(names: List[str], name: str) -> Optional[List[str]]:
    if name not in names or names[0] == name:
        return None
    return [name] + [n for n in names if n != name]


class GameOrderManager:
    def __init__(self, backend: SaveBackend, app_state: AppState):
        self.backend = backend
        self.app_state = app_state

    async def _apply(self, compute, game_name: str) -> Optional[AppConfig]:
        config = self.app_state.config
        if config is None:
            return None
        order = compute(config.game_names(), game_name)
        if order is None:
            logging.debug(f"Reorder of '{game_name}' is a no-op, nothing sent.")
            return None
        try:
            new_config = await self.backend.reorder_games(order)
        except BackendError as e:
            logging.error(f"Reorder of '{game_name}' failed, order unchanged: {e}")
            raise
        self.app_state.set_config(new_config)
        logging.info(f"Game order updated ('{game_name}').")
        return new_config

    async def move_up(self, game_name: str) -> Optional[AppConfig]:
        return await self._apply(move_up, game_name)

    async def move_down(self, game_name: str) -> Optional[AppConfig]:
        return await self._apply(move_down, game_name)

    async def pin_to_top(self, game_name: str) -> Optional[AppConfig]:
        return await self._apply(pin_to_top, game_name)
