# Overview: Flask extension instances for database and migrations.
#
# db.session is a scoped session: each app context (one per request) gets its
# own session, removed again at teardown.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()
