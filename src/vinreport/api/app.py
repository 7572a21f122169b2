"""ASGI entrypoint: ``uvicorn vinreport.api.app:app``.

Settings are read at import, so missing credentials stop the process at
startup.
"""

from vinreport.api.factory import create_app

app = create_app()
