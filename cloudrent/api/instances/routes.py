from flask import Blueprint, jsonify, request, abort
from flask_jwt_extended import jwt_required
from flask_cors import cross_origin
import re

from cloudrent.api.helpers import current_account, get_owned_resource
from cloudrent.models import Resource
from cloudrent.lifecycle.engine import get_engine

bp = Blueprint('instances', __name__)

NAME_PATTERN = re.compile(r'^[a-zA-Z0-9-]+$')


@bp.route('', methods=['GET'])
@cross_origin()
@jwt_required()
def list_instances():
    """Lista as instâncias do usuário autenticado."""
    account = current_account()
    resources = account.resources.order_by(Resource.created_at.asc()).all()
    return jsonify([r.to_dict() for r in resources]), 200


@bp.route('', methods=['POST'])
@cross_origin()
@jwt_required()
def create_instance():
    """
    Reserva um VMID e agenda o provisionamento de uma instância.
    ---
    tags:
      - Instâncias
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - template
            - name
          properties:
            template:
              type: string
              description: Slug do template (ex. debian)
            name:
              type: string
              description: Nome da instância
            cpu:
              type: integer
            memory:
              type: integer
            storage:
              type: integer
    responses:
      202:
        description: Instância em fila para provisionamento
      400:
        description: Dados inválidos, template inexistente ou conta suspensa
    """
    account = current_account()
    data = request.get_json() or {}
    template = data.get('template')
    name = data.get('name')

    if not template or not name:
        abort(400, description="Campos obrigatórios ausentes (template, name).")
    if not NAME_PATTERN.match(name):
        abort(400, description="Nome inválido: use apenas letras, números e hífens.")

    try:
        cpu = int(data['cpu']) if data.get('cpu') else None
        memory = int(data['memory']) if data.get('memory') else None
        storage = int(data['storage']) if data.get('storage') else None
    except (TypeError, ValueError):
        abort(400, description="Especificações inválidas.")

    result, _ = get_engine().request_instance(account.id, template, name, cpu=cpu, memory=memory, storage=storage)

    return jsonify({
        'success': True,
        'message': 'Instância em provisionamento.',
        'id': result.resource_id,
        'vmid': result.vmid,
        'status': 'provisioning'
    }), 202


@bp.route('/<resource_id>', methods=['GET'])
@cross_origin()
@jwt_required()
def get_instance(resource_id):
    resource = get_owned_resource(resource_id)
    data = resource.to_dict()
    data['domains'] = [d.to_dict() for d in resource.domains]
    return jsonify(data), 200


@bp.route('/<resource_id>', methods=['DELETE'])
@cross_origin()
@jwt_required()
def delete_instance(resource_id):
    """Remove a instância (Proxmox, VPN, domínios e registro local)."""
    resource = get_owned_resource(resource_id)
    get_engine().cleanup.delete_resource(resource)
    return jsonify({'success': True, 'message': 'Instância removida.'}), 200


@bp.route('/<resource_id>/toggle', methods=['POST'])
@cross_origin()
@jwt_required()
def toggle_instance(resource_id):
    resource = get_owned_resource(resource_id)
    status = get_engine().control.toggle_status(resource)
    return jsonify({'success': True, 'status': status}), 200


@bp.route('/<resource_id>/restart', methods=['POST'])
@cross_origin()
@jwt_required()
def restart_instance(resource_id):
    resource = get_owned_resource(resource_id)
    get_engine().control.restart(resource)
    return jsonify({'success': True, 'message': 'Reinício solicitado.'}), 200


@bp.route('/<resource_id>/stats', methods=['GET'])
@cross_origin()
@jwt_required()
def instance_stats(resource_id):
    resource = get_owned_resource(resource_id)
    return jsonify(get_engine().control.get_stats(resource)), 200


@bp.route('/<resource_id>/vpn', methods=['GET'])
@cross_origin()
@jwt_required()
def instance_vpn(resource_id):
    """Retorna (gerando se necessário) a configuração WireGuard da instância."""
    resource = get_owned_resource(resource_id)
    config = get_engine().control.get_or_create_vpn_config(resource)
    return jsonify({'success': True, 'config': config}), 200


# ----------------------------------------------------------------
# SNAPSHOTS
# ----------------------------------------------------------------

@bp.route('/<resource_id>/snapshots', methods=['GET'])
@cross_origin()
@jwt_required()
def list_snapshots(resource_id):
    resource = get_owned_resource(resource_id)
    snapshots = get_engine().snapshots.list(resource)
    return jsonify([s.to_dict() for s in snapshots]), 200


@bp.route('/<resource_id>/snapshots', methods=['POST'])
@cross_origin()
@jwt_required()
def create_snapshot(resource_id):
    """
    Cria um snapshot; acima do limite, o mais antigo é removido.
    ---
    tags:
      - Snapshots
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            name:
              type: string
            description:
              type: string
    responses:
      201:
        description: Snapshot criado
    """
    resource = get_owned_resource(resource_id)
    data = request.get_json() or {}
    snapshot = get_engine().snapshots.create(resource, data.get('name'), data.get('description'))
    return jsonify(snapshot.to_dict()), 201


@bp.route('/<resource_id>/snapshots/<int:snapshot_id>/restore', methods=['POST'])
@cross_origin()
@jwt_required()
def restore_snapshot(resource_id, snapshot_id):
    resource = get_owned_resource(resource_id)
    get_engine().snapshots.restore(resource, snapshot_id)
    return jsonify({'success': True, 'message': 'Snapshot restaurado.'}), 200


@bp.route('/<resource_id>/snapshots/<int:snapshot_id>', methods=['DELETE'])
@cross_origin()
@jwt_required()
def delete_snapshot(resource_id, snapshot_id):
    resource = get_owned_resource(resource_id)
    get_engine().snapshots.delete(resource, snapshot_id)
    return jsonify({'success': True}), 200


# ----------------------------------------------------------------
# DOMÍNIOS
# ----------------------------------------------------------------

@bp.route('/<resource_id>/domains', methods=['GET'])
@cross_origin()
@jwt_required()
def list_domains(resource_id):
    resource = get_owned_resource(resource_id)
    return jsonify([d.to_dict() for d in get_engine().domains.list(resource)]), 200


@bp.route('/<resource_id>/domains', methods=['POST'])
@cross_origin()
@jwt_required()
def create_domain(resource_id):
    """
    Associa um subdomínio público a uma porta da instância.
    ---
    tags:
      - Domínios
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - port
            - suffix
          properties:
            port:
              type: integer
            suffix:
              type: string
              description: Prefixo escolhido (mín. 3 caracteres alfanuméricos)
            paid:
              type: boolean
              description: Aceita o custo diário de um domínio pago
    responses:
      201:
        description: Domínio criado
      400:
        description: Sufixo inválido, domínio em uso ou limite gratuito atingido
    """
    resource = get_owned_resource(resource_id)
    data = request.get_json() or {}
    binding = get_engine().domains.create_binding(
        resource,
        data.get('port'),
        data.get('suffix'),
        paid=data.get('paid') is True
    )
    return jsonify(binding.to_dict()), 201


@bp.route('/<resource_id>/domains/<int:binding_id>', methods=['DELETE'])
@cross_origin()
@jwt_required()
def delete_domain(resource_id, binding_id):
    resource = get_owned_resource(resource_id)
    get_engine().domains.delete_binding(resource, binding_id)
    return jsonify({'success': True}), 200
