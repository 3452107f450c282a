"""Identity domain layer: entities, rules and contracts with no I/O."""
