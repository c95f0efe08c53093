from .user import User
from .consultation import ConsultationRequest, RequestAssignment, RequestTransition
from .usage import UsageResult, TierLimit
from .ledger import Order
from .withdrawal import WithdrawalRequest
