#!/usr/bin/env python
"""
Uvicorn entry point for the course shop API
"""
import uvicorn

from course_shop.app import create_app
from course_shop.config import load_config

config = load_config()
app = create_app(config)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=config.PORT, log_config=None)
