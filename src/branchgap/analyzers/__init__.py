"""Analyzers that enrich coverage data before it is sent to the LLM."""
