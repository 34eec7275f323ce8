"""Reconciliation core shared by the bridge adapters. No network I/O."""
