"""Order identifier minting."""

from .content import ContentProvider
from .models import OrderKind
from .record_store import RecordStore

COUNTERS_COLLECTION = "counters"
ORDER_COUNTER_KEY = "order"
DEFAULT_COUNTER_START = 1000


class OrderSequencer:
    """Mints '{PREFIX}-{n}' order IDs from one shared, atomically incremented counter."""

    def __init__(self, store: RecordStore, content: ContentProvider):
        self.store = store
        self.content = content

    def next(self, kind: OrderKind) -> str:
        start = self.content.config_int("order_counter_start", DEFAULT_COUNTER_START)
        value = self.store.increment(COUNTERS_COLLECTION, ORDER_COUNTER_KEY, start)
        return f"{kind.prefix}-{value}"
