"""Project version constants.

Used in logs and in the object-store client user agent so exported artifacts
can be traced back to a specific exporter version.
"""

ENGINE_NAME: str = "flowreport"
ENGINE_VERSION: str = "0.1.0"

# Bump when the full-export column layout changes.
EXPORT_SCHEMA_VERSION: int = 1
