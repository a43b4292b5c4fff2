"""
Core modules for statusline cost accounting.

This package contains the pricing model, transcript parsing, the cached
transcript scanner, and the cost segments rendered into the status line.
"""
