"""Reconciliation of a releases directory against assets.lock."""

from releasedir.reconcile.plan import ReconcilePlan, plan_reconciliation, required_releases
from releasedir.reconcile.reconciler import ReconcileReport, Reconciler

__all__ = [
    "ReconcilePlan",
    "ReconcileReport",
    "Reconciler",
    "plan_reconciliation",
    "required_releases",
]
