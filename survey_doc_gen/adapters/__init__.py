"""Narrow interfaces to the external services the pipeline depends on."""
