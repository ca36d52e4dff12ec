"""Builders for the desired bodies of managed objects."""
