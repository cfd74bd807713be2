# Workers package - background reconciliation with RQ

from nanostudio.workers.reconciler import (
    enqueue_reconciliation,
    reconcile_pending,
    run_reconciliation_task,
)

__all__ = [
    "enqueue_reconciliation",
    "reconcile_pending",
    "run_reconciliation_task",
]
