"""Domain layer: reconciliation engine, client orchestrator and their ports."""
