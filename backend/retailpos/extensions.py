# Overview: Flask extension instances shared by the app factory, models, and CLI.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()

# compare_type makes autogenerate notice integer/string width changes on money columns.
migrate = Migrate(compare_type=True)
