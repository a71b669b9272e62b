"""Core primitives: errors, logging, settings.

Architecture::

    errors.py      GuidelintError hierarchy (Document, Config, Toc, Render, LinkCheck)
    logging.py     structlog configuration, stderr only
    settings.py    GuidelintSettings (pydantic-settings) + .guidelint.yml loading
"""
