"""zapvault command-line interface."""
