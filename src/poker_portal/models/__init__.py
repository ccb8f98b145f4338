"""Database Models Package."""

from .player import Player, PlayerPrefs
from .table import PokerTable
from .seat_request import SeatRequest
from .kyc_document import KycDocument
from .transaction import Transaction
from .cashier import CashOutRequest, CreditRequest
from .chat import ChatSession, ChatMessage
from .notification import PushNotification, NotificationReceipt
from .offer import OfferBanner, OfferView
from .feedback import PlayerFeedback
from .food_beverage import FoodAd, FoodOrder, MenuItem
from .tournament import Tournament

__all__ = ['Player', 'PlayerPrefs', 'PokerTable', 'SeatRequest', 'KycDocument', 'Transaction',
           'CashOutRequest', 'CreditRequest', 'ChatSession', 'ChatMessage',
           'PushNotification', 'NotificationReceipt', 'OfferBanner', 'OfferView',
           'PlayerFeedback', 'MenuItem', 'FoodAd', 'FoodOrder', 'Tournament']
