# module backend.app
"""
Instance FastAPI unique, construite par la factory (backend.app_setup.factory).
"""
import logging
from backend.app_setup.factory import create_app

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = create_app()
