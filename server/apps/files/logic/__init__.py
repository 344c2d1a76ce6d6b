"""Business logic layer for files app.

This package contains all business logic for file operations:
- Remote directory provisioning
- Upload and download orchestration
- Folder management, deletion and listing

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
