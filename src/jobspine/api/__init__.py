"""jobspine HTTP API (FastAPI).

    from jobspine.api import create_app
    app = create_app()
"""

from jobspine.api.app import create_app

__all__ = ["create_app"]
