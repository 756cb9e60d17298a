from .admin_user import AdminUser
from .product import Product, PricingPlan
from .auth_code import AuthCode
from .subscription import Subscription
from .refund_request import RefundRequest
from .sales_analytics import SalesAnalytics
