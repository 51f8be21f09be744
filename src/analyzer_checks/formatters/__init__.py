"""Adapters turning native analyzer output into diagnostic reports."""
