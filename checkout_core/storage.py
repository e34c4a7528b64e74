"""
storage.py — Durable Client-Side State

Holds the only state that must survive a restart of the storefront client:
    • the basket identifier (written only by BasketStore)
    • the session token (written only by SessionContext)
    • reports of payments that succeeded without a recorded order

The state is a flat JSON document. Without a path it lives in memory only.
"""

import json
import logging
import os
import time

log = logging.getLogger(__name__)

BASKET_ID_KEY = "basket_id"
TOKEN_KEY = "token"
UNRECORDED_PAYMENTS_KEY = "unrecorded_payments"


class ClientStorage:
    """
    Key/value store persisted to a JSON file.

    Args:
        path (str | None): File location. None keeps everything in memory.
    """
    def __init__(self, path=None):
        self.path = path
        self._data = self._load()

    def _load(self):
        if not self.path or not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.error(f"[Storage] Could not read {self.path}, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            log.error(f"[Storage] Unexpected content in {self.path}, starting empty.")
            return {}
        return data

    def _save(self):
        if not self.path:
            return
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f)
        os.replace(tmp_path, self.path)

    def get_item(self, key, default=None):
        return self._data.get(key, default)

    def set_item(self, key, value):
        self._data[key] = value
        self._save()

    def remove_item(self, key):
        if key in self._data:
            del self._data[key]
            self._save()

    @property
    def basket_id(self):
        return self.get_item(BASKET_ID_KEY)

    @basket_id.setter
    def basket_id(self, value):
        if value is None:
            self.remove_item(BASKET_ID_KEY)
        else:
            self.set_item(BASKET_ID_KEY, value)

    @property
    def token(self):
        return self.get_item(TOKEN_KEY)

    @token.setter
    def token(self, value):
        if value is None:
            self.remove_item(TOKEN_KEY)
        else:
            self.set_item(TOKEN_KEY, value)

    def record_unrecorded_payment(self, entry):
        """
        Appends a report of a captured payment that has no order.

        Args:
            entry (dict): At least `basketId` and `paymentIntentId`.
        """
        entries = list(self._data.get(UNRECORDED_PAYMENTS_KEY, []))
        entries.append({**entry, "recordedAt": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())})
        self.set_item(UNRECORDED_PAYMENTS_KEY, entries)

    def unrecorded_payments(self):
        return list(self._data.get(UNRECORDED_PAYMENTS_KEY, []))
