import logging

from task_service.app import unified_handler

# ---------- Logger ----------
logger = logging.getLogger()
logger.setLevel(logging.INFO)


def lambda_handler(event, context):
    return unified_handler(event, context)
