"""Lexical and vector indexes and the search orchestrator."""
