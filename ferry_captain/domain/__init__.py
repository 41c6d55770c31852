"""Pure trip progression rules: stop state machine, resolver, snapshots."""
