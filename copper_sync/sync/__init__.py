"""
copper_sync.sync - Synchronization pipeline

Contact and group models, tag aggregation, group resolution, membership
synchronization and the orchestrator tying them together.
"""
