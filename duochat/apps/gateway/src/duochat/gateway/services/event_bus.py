"""EventBus -- 进程内推送事件总线 + 在线状态

以用户 ID 为键的连接注册表：一个用户可以持有 N 个在线连接（多设备），
每个连接对应一个 asyncio.Queue。publish 对每个连接至多投递一次，
目标用户离线时直接丢弃，客户端重连后通过读接口补齐。

横向扩展需要在同样的 register/unregister/publish 接口背后接入外部 broker。
"""

import asyncio
from collections import defaultdict

import structlog
from duochat.core.config import EVENT_QUEUE_MAXSIZE
from duochat.core.models import PushEvent, PushEventType, UserRefPayload

log = structlog.get_logger()


class EventBus:
    """推送事件总线 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = EVENT_QUEUE_MAXSIZE) -> None:
        # user_id -> set of asyncio.Queue
        self._connections: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize
        self._lock = asyncio.Lock()

    async def register(self, user_id: str) -> asyncio.Queue:
        """注册一个新连接

        用户从 0 个连接变为 1 个时，向其他在线用户发布一次 UserOnline。

        Args:
            user_id: 连接所属用户

        Returns:
            asyncio.Queue 实例（连接句柄），新事件会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        async with self._lock:
            came_online = not self._connections.get(user_id)
            self._connections[user_id].add(queue)
            connection_count = len(self._connections[user_id])
            if came_online:
                self._broadcast_presence(user_id, PushEventType.USER_ONLINE)

        log.info(
            "connection_registered",
            user_id=user_id,
            connection_count=connection_count,
        )
        return queue

    async def unregister(self, user_id: str, queue: asyncio.Queue) -> None:
        """注销连接

        用户从 1 个连接变为 0 个时，向其他在线用户发布一次 UserOffline。
        重复注销同一句柄是无操作。

        Args:
            user_id: 连接所属用户
            queue: 注册时返回的队列
        """
        async with self._lock:
            queues = self._connections.get(user_id)
            if not queues or queue not in queues:
                return
            queues.discard(queue)
            connection_count = len(queues)
            if not queues:
                del self._connections[user_id]
                self._broadcast_presence(user_id, PushEventType.USER_OFFLINE)

        log.info(
            "connection_unregistered",
            user_id=user_id,
            connection_count=connection_count,
        )

    async def publish(self, user_id: str, event: PushEvent) -> int:
        """向目标用户的所有在线连接投递事件（非阻塞，不排队）

        Args:
            user_id: 目标用户 ID
            event: 要投递的事件

        Returns:
            实际投递到的连接数
        """
        return self._deliver(user_id, event)

    def is_online(self, user_id: str) -> bool:
        """用户至少有一个在线连接"""
        return bool(self._connections.get(user_id))

    def connection_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, ()))

    def online_users(self) -> list[str]:
        return [user_id for user_id, queues in self._connections.items() if queues]

    async def close(self) -> None:
        """关闭总线，清空注册表（lifespan 关闭时调用）"""
        async with self._lock:
            self._connections.clear()
        log.info("event_bus_closed")

    def _deliver(self, user_id: str, event: PushEvent) -> int:
        queues = self._connections.get(user_id)
        if not queues:
            # 离线丢弃不是错误，客户端重连后自行补齐
            log.debug("push_dropped_offline", user_id=user_id, event_type=event.type)
            return 0

        delivered = 0
        for queue in list(queues):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                log.warning(
                    "push_dropped_queue_full",
                    user_id=user_id,
                    event_type=event.type,
                )
        return delivered

    def _broadcast_presence(self, user_id: str, event_type: PushEventType) -> None:
        """向除自己以外的所有在线用户发布在线状态变化（调用方持有锁）"""
        event = PushEvent.build(event_type, UserRefPayload(user_id=user_id))
        for other_id in list(self._connections):
            if other_id != user_id:
                self._deliver(other_id, event)
