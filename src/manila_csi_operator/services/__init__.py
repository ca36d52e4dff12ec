"""Clients for the Kubernetes API and OpenStack."""
