"""Routing — compiled route table with O(path-depth) matching.

Routes are registered while the app freezes and compiled into an
immutable lookup structure before the first request is served.
"""
