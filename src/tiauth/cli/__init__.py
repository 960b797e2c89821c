"""tiauth command line interface."""
