from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
from flask_jwt_extended import JWTManager

# Vinculadas ao app em create_app (init_extensions)
db = SQLAlchemy()
migrate = Migrate()
cors = CORS()
jwt = JWTManager()  # só valida tokens; a emissão é do serviço de identidade
