from uuid import UUID


class CardNotFoundError(LookupError):
    def __init__(self, card_id: UUID):
        super().__init__(f"Card {card_id} not found")
        self.card_id = card_id
