"""Integration tests for gh-autonomy.

These tests load configuration from disk, wire the full core with
build_deps, and drive the tool surface against a mocked GitHub API.

Test Organization:
- test_end_to_end_scenario.py: config file -> approval flow -> audit sink
"""
