"""
cart.py — RFQ cart: products a buyer is collecting before submitting an RFQ.

The cart is one JSON list under a single key in a small key-value store.
Unreadable data reads as an empty cart. Store failures are logged and the
cart carries on.
"""

import os
import json
import logging
import threading

log = logging.getLogger("supplyhub.cart")

STORAGE_KEY = "rfq_cart"


class MemoryStore:
    """Key-value store held in a dict."""

    def __init__(self):
        self._data = {}

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        self._data[key] = value

    def delete(self, key):
        self._data.pop(key, None)


class JsonFileStore:
    """Key-value store persisted as one JSON object on disk."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path) as f:
            return json.load(f)

    def _read_or_empty(self) -> dict:
        """Current contents, or {} when the file is corrupt. The next write replaces it."""
        try:
            data = self._read()
        except ValueError as e:
            log.warning("Unreadable cart file %s, treating as empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w") as f:
            json.dump(data, f)
        os.replace(tmp, self.path)

    def get(self, key):
        with self._lock:
            return self._read_or_empty().get(key)

    def set(self, key, value):
        with self._lock:
            data = self._read_or_empty()
            data[key] = value
            self._write(data)

    def delete(self, key):
        with self._lock:
            data = self._read_or_empty()
            if data.pop(key, None) is not None:
                self._write(data)


class RFQCart:
    """Cart items are {"product_id", "name", "quantity"}, one per product."""

    def __init__(self, store=None, key: str = STORAGE_KEY):
        self.store = store if store is not None else MemoryStore()
        self.key = key

    def get_items(self) -> list:
        try:
            raw = self.store.get(self.key)
            items = json.loads(raw) if raw else []
        except (OSError, ValueError) as e:
            log.warning("Unreadable RFQ cart, starting empty: %s", e)
            return []
        if not isinstance(items, list):
            return []
        return [i for i in items if isinstance(i, dict) and i.get("product_id")]

    def save(self, items: list):
        try:
            self.store.set(self.key, json.dumps(items))
        except (OSError, TypeError, ValueError) as e:
            log.error("Failed to save cart: %s", e)

    def clear(self):
        try:
            self.store.delete(self.key)
        except (OSError, ValueError) as e:
            log.error("Failed to clear cart: %s", e)

    def add_item(self, product_id: str, name: str, quantity: int = 1) -> list:
        """Add quantity of product_id, merging with a line already in the cart."""
        if quantity <= 0:
            return self.get_items()
        items = self.get_items()
        for item in items:
            if item["product_id"] == product_id:
                item["quantity"] = item.get("quantity", 0) + quantity
                break
        else:
            items.append({"product_id": product_id, "name": name, "quantity": quantity})
        self.save(items)
        return items

    def remove_item(self, product_id: str) -> list:
        items = [i for i in self.get_items() if i["product_id"] != product_id]
        self.save(items)
        return items

    def update_quantity(self, product_id: str, quantity: int) -> list:
        """Set a line's quantity; zero or less removes it."""
        if quantity <= 0:
            return self.remove_item(product_id)
        items = self.get_items()
        for item in items:
            if item["product_id"] == product_id:
                item["quantity"] = quantity
        self.save(items)
        return items

    def to_rfq_items(self) -> list:
        """Cart lines shaped for rfqs.submit_rfq."""
        return [{"product_id": i["product_id"], "product_name": i.get("name"),
                 "quantity": i["quantity"]} for i in self.get_items()]

    def __len__(self):
        return len(self.get_items())
