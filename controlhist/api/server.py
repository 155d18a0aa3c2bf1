"""FastAPI server for the control history service.

This module is a thin ASGI entrypoint that delegates to create_app().
The history service is rooted at the current working directory.
"""

from controlhist.api.app import create_app

app = create_app()
