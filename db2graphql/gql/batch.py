# batch.py
"""
Request-scoped batching of lazy relation loads.

Relation fields past the eager depth are resolved one parent at a time by
graphql-core. Each of them hands its parent to a RelationBatcher under a key
such as ``("foreign", "posts", flags)`` and awaits a future. The first load
for a key schedules a dispatch task; the task lets sibling resolvers join
until a whole event loop pass adds nothing, then runs the loader once for
every collected parent and resolves their futures.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Set, Tuple

logger = logging.getLogger(__name__)

BatchRunner = Callable[[List[Any]], Awaitable[List[Any]]]


class RelationBatcher:

    def __init__(self):
        self._pending: Dict[Hashable, List[Tuple[Any, asyncio.Future]]] = {}
        self._tasks: Set[asyncio.Task] = set()

    async def load(self, key: Hashable, item: Any, run: BatchRunner) -> Any:
        """
        Queue ``item`` under ``key`` and wait for its batch.

        Args:
            key: batch identity; loads with equal keys share one ``run`` call
            item: the parent row
            run: ``await run(items)`` returns one result per item, in order

        Returns:
            The result ``run`` produced for ``item``
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        batch = self._pending.get(key)
        if batch is None:
            batch = self._pending[key] = []
            task = loop.create_task(self._dispatch(key, run))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        batch.append((item, future))
        return await future

    async def _dispatch(self, key: Hashable, run: BatchRunner) -> None:
        batch = self._pending[key]
        size = -1
        while size != len(batch):
            size = len(batch)
            await asyncio.sleep(0)
        del self._pending[key]

        items = [item for item, _ in batch]
        logger.debug("Batch %s: %d parents", key, len(items))
        try:
            results = await run(items)
        except Exception as e:
            for _, future in batch:
                if not future.done():
                    future.set_exception(e)
            return
        for (_, future), result in zip(batch, results):
            if not future.done():
                future.set_result(result)

    def __len__(self) -> int:
        return sum(len(b) for b in self._pending.values())
