"""deploy-helper command-line entry points."""
