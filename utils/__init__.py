"""Library App - request-layer helpers

- Input validation (validators.py)
- CLI output formatting (ui_helpers.py)
"""
