"""Infrastructure layer for files app.

This package contains integrations with external systems:
- Remote FTP store client (one session per operation)
- Remote path conventions and metadata extraction

Keep infrastructure concerns separate from business logic.
"""
