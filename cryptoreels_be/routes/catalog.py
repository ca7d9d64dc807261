from flask import Blueprint, request, jsonify, current_app

from cryptoreels_be.error_codes import ErrorCodes
from cryptoreels_be.exceptions import NotFoundException, ValidationException
from cryptoreels_be.schemas import PayoutTableUpdateSchema, SymbolSchema, WeightUpdateSchema
from cryptoreels_be.utils.decorators import service_token_required
from cryptoreels_be.utils.security_logger import SecurityLogger

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api/config')


def _load_json(schema):
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationException("Invalid request format: Not valid JSON.")
    return schema.load(data)


def _require_symbol(catalog, symbol_id):
    definition = catalog.lookup(symbol_id)
    if definition is None:
        raise NotFoundException(
            f"Symbol '{symbol_id}' is not in the catalog.",
            details={'symbol_id': symbol_id},
            error_code=ErrorCodes.SYMBOL_NOT_FOUND
        )
    return definition


def _apply_update(symbol_id, action, update, requested):
    """Runs a CatalogStore update and turns a rejection into a CFG_001 response."""
    result = update()
    SecurityLogger.log_admin_event(
        'catalog_update',
        symbol_id=symbol_id,
        action=action,
        success=result.success,
        details={'requested': requested, 'errors': list(result.errors), 'warnings': list(result.warnings)}
    )
    if not result:
        raise ValidationException(
            "Catalog update rejected.",
            details={'errors': list(result.errors)},
            error_code=ErrorCodes.CATALOG_UPDATE_REJECTED
        )

    definition = current_app.catalog_store.snapshot().lookup(symbol_id)
    return jsonify({
        'status': True,
        'symbol': SymbolSchema().dump(definition),
        'warnings': list(result.warnings),
    }), 200


@catalog_bp.route('/', methods=['GET'])
@catalog_bp.route('', methods=['GET'])
def get_catalog():
    catalog = current_app.catalog_store.snapshot()
    return jsonify({
        'status': True,
        'catalog': catalog.to_config(),
        'statistics': catalog.statistics(),
    }), 200


@catalog_bp.route('/validate', methods=['GET'])
def validate_catalog():
    report = current_app.catalog_store.snapshot().validate()
    return jsonify({'status': True, 'validation': report}), 200


@catalog_bp.route('/rtp', methods=['GET'])
def get_theoretical_rtp():
    return jsonify({'status': True, 'rtp': current_app.catalog_store.snapshot().theoretical_rtp()}), 200


@catalog_bp.route('/symbols/<symbol_id>', methods=['GET'])
def get_symbol(symbol_id):
    definition = _require_symbol(current_app.catalog_store.snapshot(), symbol_id)
    return jsonify({'status': True, 'symbol': SymbolSchema().dump(definition)}), 200


@catalog_bp.route('/symbols/<symbol_id>/weight', methods=['PUT'])
@service_token_required
def update_symbol_weight(symbol_id):
    store = current_app.catalog_store
    _require_symbol(store.snapshot(), symbol_id)
    weight = _load_json(WeightUpdateSchema())['weight']
    return _apply_update(symbol_id, 'set_weight', lambda: store.set_weight(symbol_id, weight), weight)


@catalog_bp.route('/symbols/<symbol_id>/payouts', methods=['PUT'])
@service_token_required
def update_symbol_payouts(symbol_id):
    store = current_app.catalog_store
    _require_symbol(store.snapshot(), symbol_id)
    payouts = _load_json(PayoutTableUpdateSchema())['payouts']
    return _apply_update(symbol_id, 'set_payout_table', lambda: store.set_payout_table(symbol_id, payouts), payouts)
