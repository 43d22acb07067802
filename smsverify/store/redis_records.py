from typing import Optional

from redis import Redis
from redis.exceptions import WatchError

from smsverify.core.errors import Conflict
from smsverify.store.records import RecordStore, RecordTransaction
from smsverify.store.redis_conn import get_redis


class _RedisTransaction(RecordTransaction):
    """
    Optimistic transaction: every key read is WATCHed on a dedicated pipeline,
    buffered writes go out in one MULTI/EXEC. EXEC aborting (WatchError) means a
    concurrent writer touched a key we read; that surfaces as Conflict.
    """

    def __init__(self, redis: Redis, prefix: str):
        super().__init__(prefix)
        self._pipe = redis.pipeline()

    def _fetch(self, key: str) -> Optional[str]:
        self._pipe.watch(key)
        return self._pipe.get(key)

    def commit(self) -> None:
        if not self._writes:
            return
        try:
            self._pipe.multi()
            for key, value in self._writes.items():
                if value is None:
                    self._pipe.delete(key)
                else:
                    self._pipe.set(key, value)
            self._pipe.execute()
        except WatchError as exc:
            raise Conflict("Concurrent modification of verification records") from exc

    def close(self) -> None:
        self._pipe.reset()


class RedisRecordStore(RecordStore):
    def __init__(self, redis: Optional[Redis] = None, prefix: str = ""):
        self._redis = redis
        self.prefix = prefix

    def _begin(self) -> RecordTransaction:
        if self._redis is None:
            self._redis = get_redis()
        return _RedisTransaction(self._redis, self.prefix)
