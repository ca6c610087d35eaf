"""Exception hierarchy shared by every layer."""


class CadenceError(Exception):
    """Base class for all cadence errors."""


class DeckNotFoundError(CadenceError):
    def __init__(self, deck_id: str):
        super().__init__(f"Deck not found: {deck_id}")
        self.deck_id = deck_id


class CardNotFoundError(CadenceError):
    def __init__(self, card_id: str):
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id


class PresetNotFoundError(CadenceError):
    def __init__(self, name: str):
        super().__init__(f"Settings preset not found: {name}")
        self.name = name


class NotAuthenticatedError(CadenceError):
    """Raised when a sync is attempted without a user identity."""


class RemoteStoreError(CadenceError):
    """Raised when the remote progress store cannot be read or written."""
