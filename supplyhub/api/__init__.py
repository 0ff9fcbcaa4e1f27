"""
supplyhub.api — JSON API Blueprint

Importing this package registers every route module on the shared blueprint.
    from supplyhub.api import bp
    app.register_blueprint(bp)
"""

from supplyhub.api.common import bp
from supplyhub.api.modules import (  # noqa: F401  (route registration)
    routes_auth,
    routes_users,
    routes_catalog,
    routes_rfq,
    routes_orders,
    routes_notifications,
    routes_settings,
    routes_uploads,
    routes_scanner,
    routes_health,
)

__all__ = ["bp"]
