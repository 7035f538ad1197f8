"""dmandate command-line interface."""
