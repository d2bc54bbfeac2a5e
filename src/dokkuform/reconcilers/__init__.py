"""Reconcilers for each managed entity kind."""
from __future__ import annotations

from .base import Reconciler
from .domains import DomainReconciler
from .letsencrypt import LetsencryptReconciler
from .service_link import ServiceLinkReconciler

__all__ = [
    "DomainReconciler",
    "LetsencryptReconciler",
    "Reconciler",
    "ServiceLinkReconciler",
]
