# shared/logging.py
import structlog
import logging
import sys
from typing import Any, Dict, Optional

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Get logger instance
logger = structlog.get_logger()

# Configure standard library logging
logging.basicConfig(
    format="%(message)s",
    stream=sys.stdout,
    level=logging.INFO,
)

def setup_logging(level: str = "INFO", json_logs: bool = True):
    """Setup logging configuration"""
    log_level = getattr(logging, level.upper())
    logging.getLogger().setLevel(log_level)

    if not json_logs:
        # Human-readable output for local runs
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.dev.ConsoleRenderer()
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

def log_task_decision(
    task_id: str,
    intent_kind: str,
    decision: str,
    source: str,
    confidence: float,
    reason: Optional[str] = None,
    policy_name: Optional[str] = None
):
    """Log an approval decision for the audit trail"""
    extra_data = {
        "task_id": task_id,
        "intent": intent_kind,
        "decision": decision,
        "decision_source": source,
        "confidence": round(confidence, 3)
    }

    if reason:
        extra_data["reason"] = reason

    if policy_name:
        extra_data["policy"] = policy_name

    logger.info("Task decision", **extra_data)

def log_transform_applied(
    file_path: str,
    intent_kind: str,
    transform: str,
    lines_changed: int,
    success: bool,
    error_kind: Optional[str] = None,
    identifier: Optional[str] = None
):
    """Log the outcome of one transform"""
    extra_data = {
        "file_path": file_path,
        "intent": intent_kind,
        "transform": transform,
        "lines_changed": lines_changed,
        "success": success
    }

    if error_kind:
        extra_data["error_kind"] = error_kind
        extra_data["identifier"] = identifier
        logger.warning("Transform failed", **extra_data)
    else:
        logger.info("Transform applied", **extra_data)

def log_run_completed(
    run_id: str,
    project_path: str,
    findings: int,
    tasks_proposed: int,
    tasks_processed: int,
    tasks_succeeded: int,
    outcome: str
):
    """Log the summary of a host run"""
    logger.info("Run completed",
               run_id=run_id,
               project_path=project_path,
               findings=findings,
               tasks_proposed=tasks_proposed,
               tasks_processed=tasks_processed,
               tasks_succeeded=tasks_succeeded,
               outcome=outcome)

def log_store_event(
    store: str,
    operation: str,
    run_id: Optional[str] = None,
    additional_context: Optional[Dict[str, Any]] = None
):
    """Log run store operations"""
    extra_data = {
        "store": store,
        "operation": operation
    }

    if run_id:
        extra_data["run_id"] = run_id

    if additional_context:
        extra_data.update(additional_context)

    logger.debug("Run store event", **extra_data)
