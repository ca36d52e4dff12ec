"""Reconcile handlers for the ManilaDriver resource.

The kopf handlers live in ``maniladriver`` and register themselves when the
module is imported by ``main``.
"""
