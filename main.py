"""
AlbaniaRides
============
Serves the JSON API under /api/v1 and the web pages at /.

Run with:  python main.py   (or: uvicorn main:app --reload)
"""

import uvicorn

from rideshare.api.app import create_app
from rideshare.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
