"""
In-memory storage of the sample resources

The store is shared by all requests of one application instance, so
every access to its tables is guarded by a single lock. Returned
objects are copies; mutating them doesn't change the stored state.
"""

import time
import logging
import threading
from typing import Dict, List, Optional

from .. import schemas


logger = logging.getLogger(__name__)


SAMPLE_USERS = [
    {"name": "alice", "email": "alice@example.com", "display_name": "Alice"},
    {"name": "bob", "email": "bob@example.com", "display_name": "Bob"},
    {"name": "carol", "email": "carol@example.com", "display_name": None, "active": False}
]

SAMPLE_ORDERS = [
    (1, "coffee", 2, "shipped"),
    (1, "tea", 1, "pending"),
    (2, "coffee", 5, "pending"),
    (3, "water", 12, "cancelled")
]


class Store:
    """
    Thread-safe in-memory tables of users and orders
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[int, schemas.User] = {}
        self._orders: Dict[int, schemas.Order] = {}
        self._next_user_id = 1
        self._next_order_id = 1

    def seed(self):
        for user in SAMPLE_USERS:
            self.create_user(schemas.UserCreation(**user))
        for user_id, item, quantity, status in SAMPLE_ORDERS:
            self.create_order(user_id, item, quantity, status)
        logger.debug(f"Seeded {len(SAMPLE_USERS)} users and {len(SAMPLE_ORDERS)} orders")

    def list_users(self) -> List[schemas.User]:
        with self._lock:
            return [u.model_copy() for u in self._users.values()]

    def get_user(self, user_id: int) -> Optional[schemas.User]:
        with self._lock:
            user = self._users.get(user_id)
            return user and user.model_copy()

    def find_user_by_name(self, name: str) -> Optional[schemas.User]:
        with self._lock:
            for user in self._users.values():
                if user.name.lower() == name.lower():
                    return user.model_copy()
        return None

    def create_user(self, creation: schemas.UserCreation) -> schemas.User:
        with self._lock:
            user = schemas.User(
                id=self._next_user_id,
                created=int(time.time()),
                **creation.model_dump()
            )
            self._users[user.id] = user
            self._next_user_id += 1
            return user.model_copy()

    def replace_user(self, user_id: int, creation: schemas.UserCreation) -> Optional[schemas.User]:
        with self._lock:
            old = self._users.get(user_id)
            if old is None:
                return None
            user = schemas.User(id=old.id, created=old.created, **creation.model_dump())
            self._users[user_id] = user
            return user.model_copy()

    def delete_user(self, user_id: int) -> bool:
        with self._lock:
            if self._users.pop(user_id, None) is None:
                return False
            for order_id in [o.id for o in self._orders.values() if o.user_id == user_id]:
                del self._orders[order_id]
            return True

    def list_orders(self, user_id: Optional[int] = None) -> List[schemas.Order]:
        with self._lock:
            return [
                o.model_copy() for o in self._orders.values()
                if user_id is None or o.user_id == user_id
            ]

    def get_order(self, order_id: int) -> Optional[schemas.Order]:
        with self._lock:
            order = self._orders.get(order_id)
            return order and order.model_copy()

    def create_order(self, user_id: int, item: str, quantity: int, status: str = "pending") -> schemas.Order:
        with self._lock:
            if user_id not in self._users:
                raise ValueError(f"Unknown user {user_id}")
            order = schemas.Order(
                id=self._next_order_id,
                user_id=user_id,
                item=item,
                quantity=quantity,
                status=status,
                created=int(time.time())
            )
            self._orders[order.id] = order
            self._next_order_id += 1
            return order.model_copy()
