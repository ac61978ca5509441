from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from flask_cors import cross_origin
from cloudrent.models import ServiceTemplate

bp = Blueprint('catalog', __name__)


@bp.route('/templates', methods=['GET', 'OPTIONS'])
@cross_origin()
@jwt_required()
def list_templates():
    """Lista apenas templates ATIVOS para uso na criação de instâncias."""
    templates = ServiceTemplate.query.filter_by(is_active=True).order_by(ServiceTemplate.id).all()
    return jsonify([t.to_dict() for t in templates]), 200
