from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from flask_cors import cross_origin

from cloudrent.api.helpers import current_account
from cloudrent.models import LedgerEntry
from cloudrent.lifecycle.engine import get_engine

bp = Blueprint('account', __name__)


@bp.route('/me', methods=['GET'])
@cross_origin()
@jwt_required()
def me():
    account = current_account()
    return jsonify(account.to_dict()), 200


@bp.route('/ledger', methods=['GET'])
@cross_origin()
@jwt_required()
def ledger():
    """Últimos movimentos de pontos da conta (mais recentes primeiro)."""
    account = current_account()
    limit = min(request.args.get('limit', 50, type=int), 500)
    entries = (
        account.ledger
        .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .limit(limit)
        .all()
    )
    return jsonify([e.to_dict() for e in entries]), 200


@bp.route('/me', methods=['DELETE'])
@cross_origin()
@jwt_required()
def delete_me():
    """
    Remove a conta e tudo o que lhe pertence (instâncias, domínios, VPN, ledger).
    ---
    tags:
      - Conta
    security:
      - Bearer: []
    responses:
      200:
        description: Conta removida
    """
    account = current_account()
    get_engine().cleanup.delete_account(account)
    return jsonify({'success': True, 'message': 'Conta removida.'}), 200
