from ..utils.dt_utils import utcnow
from .household import Household
from .user import User
from .task import Task, TaskAssignment, Completion
from .reward import Reward, RewardRequest
from .points import CoinTransaction
from .activity import Activity
