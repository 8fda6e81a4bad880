"""Service reconciliation: repointing service configs at a new base directory"""

from .bindings import build_default_bindings, service_units
from .reconciler import ServiceReconciler
from .rewriters import get_rewriter, rebase_path

__all__ = ['build_default_bindings', 'service_units', 'ServiceReconciler', 'get_rewriter', 'rebase_path']
