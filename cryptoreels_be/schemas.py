from marshmallow import EXCLUDE, Schema, ValidationError, fields, validates
from marshmallow.validate import Length, Range

from cryptoreels_be.utils.reel_generator import MAX_REEL_HEIGHT, NUM_REELS


# --- Request Schemas ---

class NftDataSchema(Schema):
    """NFT ownership already resolved by the embedding platform."""
    class Meta:
        unknown = EXCLUDE

    has_eligible_nfts = fields.Bool(load_default=False)
    total_multiplier = fields.Float(
        load_default=1.0,
        validate=Range(min=1, error="NFT multiplier must be at least 1.")
    )
    eligible_nfts = fields.List(fields.Dict(), load_default=list)
    wallet_count = fields.Int(load_default=0, validate=Range(min=0))
    source = fields.Str(load_default='none', validate=Length(max=64))


class InitializeRequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    player_id = fields.Str(required=True, validate=Length(min=1, max=128))
    bet_amount = fields.Float(
        load_default=None,
        validate=Range(min=0, min_inclusive=False, error="Bet amount must be positive.")
    )
    token_type = fields.Str(load_default='points', validate=Length(min=1, max=32))
    nft_data = fields.Nested(NftDataSchema, load_default=None, allow_none=True)


class SpinRequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    game_id = fields.Str(required=True, validate=Length(min=1, max=128))
    bet_amount = fields.Float(
        required=True,
        validate=Range(min=0, min_inclusive=False, error="Bet amount must be positive.")
    )
    # Format is checked by the random decoder so malformed values report RNG_001.
    random_value = fields.Str(required=True)
    nft_data = fields.Nested(NftDataSchema, load_default=None, allow_none=True)


class ServerSeededSpinRequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    game_id = fields.Str(load_default='test_mode', validate=Length(min=1, max=128))
    bet_amount = fields.Float(
        required=True,
        validate=Range(min=0, min_inclusive=False, error="Bet amount must be positive.")
    )
    nft_data = fields.Nested(NftDataSchema, load_default=None, allow_none=True)


class EvaluateRequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    grid = fields.List(fields.List(fields.Str()), required=True)
    bet_amount = fields.Float(
        load_default=1.0,
        validate=Range(min=0, min_inclusive=False, error="Bet amount must be positive.")
    )

    @validates('grid')
    def validate_grid_bounds(self, value, **kwargs):
        # Full shape rules live in reel_generator; this only bounds request size.
        if len(value) > NUM_REELS * 2 or any(len(column) > MAX_REEL_HEIGHT * 2 for column in value):
            raise ValidationError('Grid is far larger than a Megaways grid.')


class WeightUpdateSchema(Schema):
    # Value checks are owned by CatalogStore.set_weight.
    weight = fields.Raw(required=True)


class PayoutTableUpdateSchema(Schema):
    payouts = fields.Dict(keys=fields.Str(), values=fields.Raw(), required=True)


# --- Response Schemas ---

class ReelSchema(Schema):
    index = fields.Int()
    height = fields.Int()
    cells = fields.List(fields.Str(allow_none=True))


class WinningCombinationSchema(Schema):
    symbol_id = fields.Str()
    run_length = fields.Int()
    positions = fields.List(fields.List(fields.Int()))
    base_payout_multiplier = fields.Float()
    ways_count = fields.Int()


class EvaluationResultSchema(Schema):
    combinations = fields.List(fields.Nested(WinningCombinationSchema))
    total_ways = fields.Int()
    has_wins = fields.Bool()


class CascadeRoundSchema(Schema):
    level = fields.Int()
    grid = fields.List(fields.Nested(ReelSchema))
    combinations = fields.List(fields.Nested(WinningCombinationSchema))
    multiplier = fields.Float()
    level_payout = fields.Float()
    cumulative_payout = fields.Float()


class SpinResultSchema(Schema):
    random_value = fields.Str()
    bet_amount = fields.Float()
    initial_grid = fields.List(fields.Nested(ReelSchema))
    ways_to_win = fields.Int()
    rounds = fields.List(fields.Nested(CascadeRoundSchema))
    final_grid = fields.List(fields.Nested(ReelSchema))
    total_cascades = fields.Int()
    total_winnings = fields.Float()
    max_multiplier_reached = fields.Float()
    bits_consumed = fields.Int()
    bonus_trigger = fields.Dict()


class SymbolSchema(Schema):
    id = fields.Str()
    name = fields.Str(attribute='display_name')
    category = fields.Function(lambda definition: definition.category.value)
    value = fields.Float(attribute='base_value')
    weight = fields.Int(attribute='selection_weight')
    rarity = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)
    payouts = fields.Function(
        lambda definition: {str(length): payout for length, payout in definition.payout_by_size.items()}
    )
