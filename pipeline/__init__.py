"""Pipeline components.

This package contains the CSV codec, the column projector, the full-export
table builder and the local/S3 storage backends.
"""
