# =============================================================================
# Invocation Classifier - Detect Lambda Event Protocol
# =============================================================================
# Inspects the structural shape of a raw payload and decides which event
# protocol produced it. Pure function of its input: no mutation, no I/O.
#
# Detection order (first match wins):
#   1. httpMethod + resource/path          -> HttpRequest
#   2. source + detail-type                 -> BusEventScheduled / BusEventCustom
#   3. Records/records with aws:sqs marker  -> QueueBatch
#   4. anything else                        -> ClassificationError
# =============================================================================

import logging
from typing import Any, Mapping

from task_service.runtime.envelope import (
    InvocationKind,
    QUEUE_EVENT_SOURCE,
    SCHEDULED_EVENT_DETAIL_TYPE,
    SCHEDULED_EVENT_SOURCE,
    has_field,
    pick,
)
from task_service.runtime.errors import ClassificationError

logger = logging.getLogger(__name__)


class InvocationClassifier:
    """
    Classifies raw invocation payloads.

    Args:
        custom_source_prefix: prefix a bus event `source` must start with to
            count as a custom application event
        custom_detail_type_prefix: prefix its `detail-type` must start with
    """

    def __init__(self, custom_source_prefix: str = "com.custom",
                 custom_detail_type_prefix: str = "custom-event"):
        self.custom_source_prefix = (custom_source_prefix or "").strip()
        self.custom_detail_type_prefix = (custom_detail_type_prefix or "").strip()

    def classify(self, raw: Any) -> InvocationKind:
        """Return the InvocationKind for raw, or raise ClassificationError."""
        if not isinstance(raw, Mapping):
            raise ClassificationError(
                ClassificationError.UNCLASSIFIABLE_INPUT,
                f"Invocation payload must be a JSON object, got {type(raw).__name__}",
                {"presentTopLevelKeys": []},
            )

        if self._is_http_request(raw):
            logger.debug("Detected API Gateway invocation")
            return InvocationKind.HTTP_REQUEST

        if has_field(raw, "source") and has_field(raw, "detail-type"):
            return self.classify_bus_event(pick(raw, "source"), pick(raw, "detail-type"))

        if has_field(raw, "Records"):
            records = pick(raw, "Records")
            if isinstance(records, list):
                if not records:
                    raise ClassificationError.empty_batch()
                first = records[0]
                if isinstance(first, Mapping) and pick(first, "eventSource") == QUEUE_EVENT_SOURCE:
                    logger.debug("Detected SQS invocation")
                    return InvocationKind.QUEUE_BATCH

        keys = list(raw.keys())
        logger.error(f"Unsupported event shape, top-level keys: {keys}")
        raise ClassificationError.unclassifiable(keys)

    def classify_bus_event(self, source: Any, detail_type: Any) -> InvocationKind:
        """Sub-classify an EventBridge event. Never falls back to a default kind."""
        src = source.strip() if isinstance(source, str) else ""
        dtype = detail_type.strip() if isinstance(detail_type, str) else ""

        if src == SCHEDULED_EVENT_SOURCE and dtype == SCHEDULED_EVENT_DETAIL_TYPE:
            logger.debug(f"Detected EventBridge Scheduled Event (source='{src}', detailType='{dtype}')")
            return InvocationKind.BUS_EVENT_SCHEDULED

        if self._is_custom(src, dtype):
            logger.debug(f"Detected EventBridge Custom Event (source='{src}', detailType='{dtype}')")
            return InvocationKind.BUS_EVENT_CUSTOM

        logger.error(f"Unable to determine EventBridge type from source='{src}' and detailType='{dtype}'")
        raise ClassificationError.unrecognized_bus_event(src, dtype)

    def _is_custom(self, source: str, detail_type: str) -> bool:
        # Empty prefixes would match everything
        if not self.custom_source_prefix or not self.custom_detail_type_prefix:
            return False
        return source.startswith(self.custom_source_prefix) and \
            detail_type.startswith(self.custom_detail_type_prefix)

    @staticmethod
    def _is_http_request(raw: Mapping[str, Any]) -> bool:
        return has_field(raw, "httpMethod") and (has_field(raw, "resource") or has_field(raw, "path"))


def classify(raw: Any, custom_source_prefix: str = "com.custom",
             custom_detail_type_prefix: str = "custom-event") -> InvocationKind:
    """Convenience wrapper around InvocationClassifier.classify."""
    return InvocationClassifier(custom_source_prefix, custom_detail_type_prefix).classify(raw)
