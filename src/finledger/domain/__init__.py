"""Domain layer for finledger application."""
