class OutfitError(Exception):
    pass


class LLMError(OutfitError):
    pass


class ParseError(OutfitError):
    pass
