"""Operational scripts for Dropline."""
