class ErrorCodes:
    # Generic
    GENERIC_ERROR = "GEN_001"
    INTERNAL_SERVER_ERROR = "GEN_500"
    NOT_FOUND = "GEN_404"
    METHOD_NOT_ALLOWED = "GEN_405"

    # Auth (service token)
    UNAUTHENTICATED = "AUTH_001"
    FORBIDDEN = "AUTH_002"

    # Input validation
    VALIDATION_ERROR = "VAL_001"
    INVALID_BET = "VAL_002"
    INVALID_NFT_MULTIPLIER = "VAL_003"

    # Randomness
    INVALID_RANDOM_INPUT = "RNG_001"

    # Game engine
    GAME_LOGIC_ERROR = "GAME_001"
    INVALID_GRID_SHAPE = "GAME_002"
    UNKNOWN_SYMBOL = "GAME_003"

    # Symbol catalog administration
    CATALOG_UPDATE_REJECTED = "CFG_001"
    SYMBOL_NOT_FOUND = "CFG_002"
