"""Inventory & rates engine — channel-manager ARI reconciliation.

Modules:
    catalog      Room types, rate plans and their grouping
    calendar     Date window generation and period navigation
    grid         Last-known remote ARI snapshot (two planes)
    derivation   Room-type availability fallback to rate plans
    drafts       Staged edits, dirty state and draft persistence
    sync         Window batches, concurrent push, warning merge, reload
    session      Wires the above together per tenant
    errors       Error taxonomy

Pipeline:
    CalendarRangeController → DraftManager.restore → GridStore.load
    → DraftManager.set … → SyncEngine.save → GridStore.load
"""
