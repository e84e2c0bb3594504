from ..models.household import Household
from ..models.user import User, MemberRole
from ..models.task import Task, TaskAssignment, Completion
from ..models.reward import Reward, RewardRequest
from ..models.points import CoinTransaction, TransactionType
from ..models.activity import Activity, ActivityType
from ..db.base_class import Base
