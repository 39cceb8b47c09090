"""Logging and metrics for kubeident."""
