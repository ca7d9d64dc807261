import secrets
from datetime import datetime, timezone

from flask import Blueprint, request, jsonify, current_app

from cryptoreels_be.error_codes import ErrorCodes
from cryptoreels_be.exceptions import ValidationException, GameLogicException
from cryptoreels_be.schemas import (
    InitializeRequestSchema, SpinRequestSchema, ServerSeededSpinRequestSchema, EvaluateRequestSchema,
    SpinResultSchema, EvaluationResultSchema, SymbolSchema
)
from cryptoreels_be.utils.cascade_engine import CASCADE_MULTIPLIERS, MAX_CASCADES, calculate_cascade_statistics
from cryptoreels_be.utils.decorators import feature_flag_required
from cryptoreels_be.utils.reel_generator import (
    NUM_REELS, MIN_REEL_HEIGHT, MAX_REEL_HEIGHT, ensure_valid_grid, grid_from_columns
)
from cryptoreels_be.utils.security_logger import SecurityLogger
from cryptoreels_be.utils.spin_handler import apply_nft_multiplier, generate_random_value, handle_spin
from cryptoreels_be.utils.win_evaluator import (
    MAX_WAYS, calculate_total_payout, check_scatter_trigger, evaluate
)

game_bp = Blueprint('game', __name__, url_prefix='/api/game')


def _timestamp():
    return datetime.now(timezone.utc).isoformat()


def _load_json(schema):
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationException("Invalid request format: Not valid JSON.")
    # Marshmallow errors are handled by the app-level handler
    return schema.load(data)


def _check_bet_limit(bet_amount):
    max_bet = current_app.config.get('MAX_BET_AMOUNT')
    if max_bet and bet_amount > max_bet:
        raise ValidationException(
            f"Bet amount exceeds maximum allowed value of {max_bet}.",
            details={'bet_amount': bet_amount, 'max_bet_amount': max_bet},
            error_code=ErrorCodes.INVALID_BET
        )


def _nft_multiplier(nft_data):
    if not nft_data or not nft_data.get('has_eligible_nfts'):
        return 1
    return nft_data.get('total_multiplier', 1)


def _payout_tables(catalog):
    return {
        symbol_id: {str(length): payout for length, payout in table.items()}
        for symbol_id, table in catalog.payout_tables().items()
    }


def _resolve_spin(game_id, random_value, bet_amount, nft_data):
    _check_bet_limit(bet_amount)
    catalog = current_app.catalog_store.snapshot()

    result = handle_spin(random_value, bet_amount, catalog)
    nft_bonus = apply_nft_multiplier(result.total_winnings, _nft_multiplier(nft_data))
    spin_id = f"spin_{secrets.token_hex(8)}"

    SecurityLogger.log_game_event(
        'spin',
        game_id=game_id,
        bet_amount=bet_amount,
        win_amount=nft_bonus['final_winnings'],
        details={
            'spin_id': spin_id,
            'total_cascades': result.total_cascades,
            'nft_multiplier': nft_bonus['multiplier'],
            'bonus_triggered': result.bonus_trigger['triggered'],
        }
    )

    return jsonify({
        'status': True,
        'result': {
            'game_id': game_id,
            'spin_id': spin_id,
            'spin': SpinResultSchema().dump(result),
            'nft_bonus': nft_bonus,
            'statistics': calculate_cascade_statistics(result),
            'timestamp': _timestamp(),
        }
    }), 200


@game_bp.route('/initialize', methods=['POST'])
def initialize_game():
    """Starts a game for a player whose NFT holdings the platform already resolved."""
    data = _load_json(InitializeRequestSchema())
    bet_amount = data['bet_amount'] or current_app.config.get('DEFAULT_BET_AMOUNT', 1)
    _check_bet_limit(bet_amount)

    catalog = current_app.catalog_store.snapshot()
    game_id = f"crypto_reels_{secrets.token_hex(8)}"
    nft_data = data['nft_data'] or {'has_eligible_nfts': False, 'total_multiplier': 1.0,
                                     'eligible_nfts': [], 'wallet_count': 0, 'source': 'none'}

    SecurityLogger.log_game_event(
        'initialize',
        player_id=data['player_id'],
        game_id=game_id,
        bet_amount=bet_amount,
        details={'token_type': data['token_type'], 'nft_multiplier': _nft_multiplier(nft_data)}
    )

    return jsonify({
        'status': True,
        'game': {
            'game_id': game_id,
            'player_id': data['player_id'],
            'bet_amount': bet_amount,
            'token_type': data['token_type'],
            'max_ways_to_win': MAX_WAYS,
            'payout_tables': _payout_tables(catalog),
            'cascade_multipliers': list(CASCADE_MULTIPLIERS),
            'max_cascades': MAX_CASCADES,
            'nft_data': nft_data,
            'timestamp': _timestamp(),
        }
    }), 201


@game_bp.route('/spin', methods=['POST'])
def spin():
    """Resolves a spin from a caller-supplied random value."""
    data = _load_json(SpinRequestSchema())
    return _resolve_spin(data['game_id'], data['random_value'], data['bet_amount'], data['nft_data'])


@game_bp.route('/test-spin', methods=['POST'])
@feature_flag_required('TEST_MODE_ENABLED')
def test_spin():
    """Resolves a spin from a server-generated random value. Disabled unless TEST_MODE_ENABLED."""
    data = _load_json(ServerSeededSpinRequestSchema())
    random_value = generate_random_value(current_app.config.get('RANDOM_VALUE_BITS', 4096))
    return _resolve_spin(data['game_id'], random_value, data['bet_amount'], data['nft_data'])


@game_bp.route('/evaluate', methods=['POST'])
def evaluate_grid():
    """Evaluates a caller-supplied grid without cascading."""
    data = _load_json(EvaluateRequestSchema())
    grid = ensure_valid_grid(grid_from_columns(data['grid']), status_code=422)
    catalog = current_app.catalog_store.snapshot()

    try:
        evaluation = evaluate(grid, catalog)
    except GameLogicException as e:
        if e.error_code != ErrorCodes.UNKNOWN_SYMBOL:
            raise
        raise ValidationException(
            "Grid contains unknown symbols.", details=e.details, error_code=ErrorCodes.UNKNOWN_SYMBOL
        )

    return jsonify({
        'status': True,
        'evaluation': EvaluationResultSchema().dump(evaluation),
        'total_payout': calculate_total_payout(evaluation.combinations, data['bet_amount']),
        'bonus_trigger': check_scatter_trigger(grid, catalog),
    }), 200


@game_bp.route('/config', methods=['GET'])
def get_game_config():
    """Client-facing game rules: grid bounds, cascade ladder and paytable."""
    catalog = current_app.catalog_store.snapshot()
    return jsonify({
        'status': True,
        'config': {
            'name': catalog.name,
            'reels': NUM_REELS,
            'min_reel_height': MIN_REEL_HEIGHT,
            'max_reel_height': MAX_REEL_HEIGHT,
            'max_ways_to_win': MAX_WAYS,
            'cascade_multipliers': list(CASCADE_MULTIPLIERS),
            'max_cascades': MAX_CASCADES,
            'max_bet_amount': current_app.config.get('MAX_BET_AMOUNT'),
            'default_bet_amount': current_app.config.get('DEFAULT_BET_AMOUNT'),
            'symbols': SymbolSchema(many=True).dump(list(catalog)),
        }
    }), 200
