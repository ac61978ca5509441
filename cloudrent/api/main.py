from flask import Blueprint, jsonify
from flask_cors import cross_origin
from datetime import datetime
from sqlalchemy import text

from cloudrent.extensions import db
from cloudrent.lifecycle.engine import get_engine
from cloudrent.services.health import get_system_health, UNHEALTHY

main_bp = Blueprint('main', __name__)


@main_bp.route('/', methods=['GET'])
def index():
    return jsonify({
        "project": "CloudRent API",
        "status": "online",
        "documentation": "/docs"
    }), 200


@main_bp.route('/health', methods=['GET'])
@main_bp.route('/api/health', methods=['GET', 'OPTIONS'])
@cross_origin()
def health_check():
    """
    Estado do banco, do Proxmox, dos circuit breakers e das filas do motor.
    ---
    tags:
      - Sistema
    responses:
      200:
        description: Saudável ou degradado
      503:
        description: Banco ou Proxmox indisponível
    """
    engine = get_engine()
    report = get_system_health(engine.hypervisor)

    try:
        db.session.execute(text('SELECT 1'))
        report['database'] = "connected"
    except Exception as e:
        report['status'] = UNHEALTHY
        report['database'] = "disconnected"
        report['database_error'] = str(e)

    report['queues'] = {
        queue.name: {'running': queue.running, 'pending': queue.pending}
        for queue in (engine.allocation_queue, engine.provisioning_queue)
    }
    report['server_time'] = datetime.utcnow().isoformat()

    return jsonify(report), 503 if report['status'] == UNHEALTHY else 200
