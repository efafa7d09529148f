from examprep.models.spaced_repetition_card import SpacedRepetitionCardModel

__all__ = ["SpacedRepetitionCardModel"]
