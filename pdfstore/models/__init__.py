from pdfstore.models.user import User
from pdfstore.models.item import Item
from pdfstore.models.order import Order, OrderStatus, Gateway
from pdfstore.models.payment_settings import PaymentSettings

# add ALL models here
