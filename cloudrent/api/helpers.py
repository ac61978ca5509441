from flask import abort
from flask_jwt_extended import get_jwt_identity

from cloudrent.extensions import db
from cloudrent.models import Account, Resource


def current_account():
    """Conta do token JWT; 401 se já não existir."""
    account = db.session.get(Account, get_jwt_identity())
    if account is None:
        abort(401, description="Conta não encontrada.")
    return account


def get_owned_resource(resource_id, account=None):
    """Instância do usuário (ou qualquer uma, para admins)."""
    account = account or current_account()
    resource = db.session.get(Resource, resource_id)
    if resource is None or (resource.owner_id != account.id and not account.is_admin):
        abort(404, description="Instância não encontrada.")
    return resource
