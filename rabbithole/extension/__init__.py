"""Extension background glue: per-tab saved state and the toolbar icon."""
