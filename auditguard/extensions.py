from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy.orm import DeclarativeBase
from flask_sqlalchemy import SQLAlchemy

class Base(DeclarativeBase):
  pass

db = SQLAlchemy(model_class=Base)
cors = CORS()
migrate = Migrate()
