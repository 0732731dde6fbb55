from .position_book import PositionBook

__all__ = ["PositionBook"]
