"""Planning and execution engine."""
