# =============================================================================
# Batch Outcome Aggregator
# =============================================================================
# Runs the per-item handler over every queue item and reports which items
# failed so SQS can retry or dead-letter only those messages.
#
# - Each item is processed independently; its failure never touches siblings.
# - Items run sequentially or on a bounded thread pool (max_workers).
# - Before an item starts, the remaining invocation budget is checked. Items
#   that cannot start in time are reported failed, never dropped.
# =============================================================================

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional, Sequence

from task_service.runtime.envelope import BatchOutcome, ItemRejection, ItemResult, QueueItem

logger = logging.getLogger(__name__)

ItemHandler = Callable[[QueueItem], Any]
RemainingTimeFunc = Callable[[], int]

DEADLINE_EXCEEDED = "DeadlineExceeded"


class BatchOutcomeAggregator:
    """
    Drives the per-item loop for a queue batch.

    Args:
        max_workers: upper bound on concurrently running item handlers
        deadline_margin_ms: minimum remaining budget required to start an item
    """

    def __init__(self, max_workers: int = 1, deadline_margin_ms: int = 0):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.deadline_margin_ms = max(0, deadline_margin_ms)

    def process(
        self,
        items: Sequence[QueueItem],
        handler: ItemHandler,
        rejected: Iterable[ItemRejection] = (),
        remaining_time_ms: Optional[RemainingTimeFunc] = None,
    ) -> BatchOutcome:
        """
        Process every item and collect a BatchOutcome.

        Never raises for per-item failures. Raises ValueError only when the
        batch holds no records at all.
        """
        rejected = list(rejected)
        if not items and not rejected:
            raise ValueError("Queue batch must contain at least one record")

        logger.info(f"Processing SQS batch: {len(items)} messages ({len(rejected)} rejected at normalization)")

        results = [ItemResult(r.item_id, False, r.reason) for r in rejected]
        results.extend(self._run_all(items, handler, remaining_time_ms))

        outcome = collect_outcome(results)
        logger.info(
            f"SQS batch processing complete: total={outcome.processed}, "
            f"success={outcome.succeeded}, failures={len(outcome.failed_item_ids)}"
        )
        return outcome

    def _run_all(self, items: Sequence[QueueItem], handler: ItemHandler,
                 remaining_time_ms: Optional[RemainingTimeFunc]) -> List[ItemResult]:
        def run(item: QueueItem) -> ItemResult:
            return self._run_one(item, handler, remaining_time_ms)

        if self.max_workers == 1 or len(items) <= 1:
            return [run(item) for item in items]

        # map() keeps input order; each worker checks the deadline before starting
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as pool:
            return list(pool.map(run, items))

    def _run_one(self, item: QueueItem, handler: ItemHandler,
                 remaining_time_ms: Optional[RemainingTimeFunc]) -> ItemResult:
        if self._out_of_time(remaining_time_ms):
            logger.warning(f"Skipping message, invocation deadline is near: messageId={item.id}")
            return ItemResult(item.id, False, DEADLINE_EXCEEDED)

        try:
            logger.debug(f"Processing SQS message: messageId={item.id}")
            handler(item)
        except Exception as e:
            logger.error(f"Failed to process message: messageId={item.id}, error={e}", exc_info=True)
            return ItemResult(item.id, False, str(e) or type(e).__name__)

        logger.info(f"Message processed successfully: messageId={item.id}")
        return ItemResult(item.id, True)

    def _out_of_time(self, remaining_time_ms: Optional[RemainingTimeFunc]) -> bool:
        if remaining_time_ms is None:
            return False
        try:
            remaining = remaining_time_ms()
        except Exception:
            logger.warning("Could not read remaining invocation time; continuing", exc_info=True)
            return False
        return remaining is not None and remaining < self.deadline_margin_ms


def collect_outcome(results: Iterable[ItemResult]) -> BatchOutcome:
    """Fold per-item results into a BatchOutcome, listing each failed id once."""
    failed: List[str] = []
    seen = set()
    processed = succeeded = 0
    for result in results:
        processed += 1
        if result.ok:
            succeeded += 1
        elif result.item_id not in seen:
            seen.add(result.item_id)
            failed.append(result.item_id)
    return BatchOutcome(failed_item_ids=tuple(failed), processed=processed, succeeded=succeeded)
