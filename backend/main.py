"""
Backend entry point.

Run the full bootstrap (data store connection before listening):
    python main.py

Or serve the application directly with uvicorn:
    uvicorn main:app --reload
"""
from apiserver.server import build_application, main

# Logging is configured from settings before any route module loads
app = build_application()

__all__ = ["app"]


if __name__ == "__main__":
    main(app)
