"""Campus directory data-consistency subsystem."""
