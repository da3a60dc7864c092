"""
Broadcaster：publish(topic, event) 的實作

WebSocketHub 是 process 內的 fan-out：
- 每個 WebSocket 連線訂閱一個 topic（rooms/{code}），拿到一個 asyncio.Queue
- publish 可能從 threadpool（sync endpoint）或 sweeper thread 呼叫，
  所以用 loop.call_soon_threadsafe 把事件放進各訂閱者的 queue
- 不同 topic 之間不保證順序；同一 topic 按 publish 順序送達
"""
import asyncio
import logging
import threading
from typing import Any, Dict, Optional, Set, Tuple

logger = logging.getLogger(__name__)

Subscription = Tuple[asyncio.AbstractEventLoop, asyncio.Queue]


def room_topic(code: str) -> str:
    return f"rooms/{code}"


class Broadcaster:
    """publish collaborator 介面"""

    def publish(self, topic: str, event: Dict[str, Any]) -> None:
        raise NotImplementedError


class WebSocketHub(Broadcaster):
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Set[Subscription]] = {}

    def subscribe(self, topic: str) -> Subscription:
        """在目前的 event loop 上建立訂閱（必須在 async context 呼叫）"""
        subscription = (asyncio.get_running_loop(), asyncio.Queue())
        with self._lock:
            self._subscribers.setdefault(topic, set()).add(subscription)
        logger.info(f"Subscriber added to {topic}")
        return subscription

    def unsubscribe(self, topic: str, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(topic)
            if not subs:
                return
            subs.discard(subscription)
            if not subs:
                del self._subscribers[topic]
        logger.info(f"Subscriber removed from {topic}")

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, ()))

    def publish(self, topic: str, event: Dict[str, Any]) -> None:
        with self._lock:
            subs = list(self._subscribers.get(topic, ()))

        for loop, queue in subs:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, event)
            except RuntimeError:
                # event loop 已關閉，連線即將被清掉
                logger.warning(f"Dropping event for closed subscriber on {topic}")


_broadcaster: Optional[Broadcaster] = None


def get_broadcaster() -> Broadcaster:
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = WebSocketHub()
    return _broadcaster


def set_broadcaster(broadcaster: Optional[Broadcaster]) -> None:
    """替換 process 內的 broadcaster（測試用；傳 None 會在下次取用時重建 WebSocketHub）"""
    global _broadcaster
    _broadcaster = broadcaster
