"""
Provider webhook routes
"""
from flask import Blueprint, request, jsonify, current_app

webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/api/webhooks')


@webhooks_bp.route('/<gateway>', methods=['POST'])
def receive(gateway):
    """Authenticate, parse and reconcile one provider notification"""
    registry = current_app.extensions['payment_registry']
    if gateway not in registry:
        return jsonify({'error': f"Gateway '{gateway}' not supported", 'code': 'UNSUPPORTED_GATEWAY'}), 404
    adapter = registry.get(gateway)

    raw = request.get_data()
    headers = dict(request.headers)
    query = request.args.to_dict()
    if not adapter.verify_webhook(raw, headers, query):
        current_app.logger.warning(f"Rejected {adapter.gateway_id} webhook: signature verification failed")
        return jsonify({'error': 'Invalid signature', 'code': 'INVALID_SIGNATURE'}), 400

    event = adapter.parse_webhook(raw, headers, query)
    if event is None:
        current_app.logger.info(f"{adapter.gateway_id} webhook carried no payment event")
        return jsonify({'received': True})

    reconciler = current_app.extensions['payment_reconciler']
    try:
        event = adapter.enrich_event(event)
        result = reconciler.reconcile(adapter.gateway_id, event)
    except Exception as e:
        # Non-2xx makes the provider retry; status-guarded writes make that safe
        current_app.logger.error(f"Error processing {adapter.gateway_id} webhook: {str(e)}", exc_info=True)
        return jsonify({'error': 'Webhook processing failed'}), 500
    return jsonify(result)
