"""Flask API Blueprints package.

- health: Health check and metadata endpoints
- reports: Flow-report export endpoints
"""

# Import blueprints for convenient registration
from apps.flask_api.blueprints.health import health_bp
from apps.flask_api.blueprints.reports import reports_bp

__all__ = [
    "health_bp",
    "reports_bp",
]
