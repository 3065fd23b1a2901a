"""
Bootstrap orchestration engine.

Detects the state of a project tree, resolves per-unit configuration and
executes a plan of bootstrap units against the tree.
"""
