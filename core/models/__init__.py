# 导入用户模型
from .user import User
# 导入日记模型
from .diary import Diary
# 导入 AI 反馈与每日配额模型
from .ai_feedback import AIFeedback
from .daily_feedback_usage import DailyFeedbackUsage
# 导入基础模型
from .base import *
