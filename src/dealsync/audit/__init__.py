"""Snapshot audit module -- detects deleted, backdated and altered marketplace records.

Independent of deal generation: it only reads snapshots and reports findings.
"""
