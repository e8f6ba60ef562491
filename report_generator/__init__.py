"""
Market report generator.

Turns a short research brief into a validated structured report and
renders it as a self-contained HTML document, Markdown, or a paginated PDF.
"""

__version__ = "0.1.0"
