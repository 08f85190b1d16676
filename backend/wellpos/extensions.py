# Overview: Flask extension instances for database, migrations and the session cache.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.session_cache import SessionCache

db = SQLAlchemy()
migrate = Migrate()
session_cache = SessionCache()
