"""
Route modules.

Every ``*.py`` file in this directory not starting with ``_`` is loaded
at startup and its ``router`` is mounted under ``/api/v1``.
"""
