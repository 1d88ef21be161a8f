import os
from contextlib import contextmanager
from typing import Any, Callable, Optional

import mlflow

from app.utils.logger import get_logger

logger = get_logger(__name__)


def _tracking_disabled() -> bool:
    return (
        os.getenv("ROUTEWISE_ENV") == "test"
        or not os.getenv("ROUTEWISE_MLFLOW_TRACKING_URI")
    )


@contextmanager
def mlflow_context(run_name: str | None = None):
    """
    MLflow run lifecycle handler.

    - Starts a run if none is active, reuses an active one otherwise
    - Ends runs it started, even on error
    - MLflow failures never reach the caller

    No-op in the test environment or when no tracking URI is configured.

    Args:
        run_name (str | None):
            Optional MLflow run name for easier identification in the UI.
    """
    if _tracking_disabled():
        yield None
        return

    started_here = False
    run = None

    try:
        run = mlflow.active_run()
        if run is None:
            run = mlflow.start_run(run_name=run_name)
            started_here = True
            logger.debug(
                "MLflow run started",
                extra={"run_id": run.info.run_id, "run_name": run_name},
            )
    except Exception:
        logger.warning("Could not start MLflow run", exc_info=True)

    try:
        yield run
    finally:
        if started_here:
            try:
                mlflow.end_run()
            except Exception:
                logger.exception("Failed to end MLflow run")


def mlflow_safe(
    func: Callable[..., Any],
    *args: Any,
    swallow: bool = True,
    **kwargs: Any,
) -> Optional[Any]:
    """
    Safely execute an MLflow function call.

    Tracking is an observability dependency: a failed call is logged
    and, unless ``swallow`` is False, suppressed.

    Returns:
        The MLflow function's return value, or None when skipped or failed.
    """
    if _tracking_disabled():
        return None

    try:
        return func(*args, **kwargs)

    except Exception:
        logger.warning(
            "MLflow call failed: %s | args=%s kwargs=%s",
            getattr(func, "__name__", func),
            args,
            kwargs,
            exc_info=True,
        )
        if not swallow:
            raise
        return None
