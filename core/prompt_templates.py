"""
AI 提示词模板 - 日记反馈与区间分析

所有提示词都要求模型使用与日记相同的语言作答，
并以温和、具体、不说教的方式回应用户。
"""

from datetime import date
from enum import Enum
from typing import Dict, List, Tuple


class FeedbackStyle(str, Enum):
    """反馈风格枚举"""
    ENCOURAGING = "encouraging"   # 鼓励型
    HONEST = "honest"             # 直言型
    EMPATHETIC = "empathetic"     # 共情型
    ANALYTICAL = "analytical"     # 分析型


DEFAULT_FEEDBACK_STYLE = FeedbackStyle.ENCOURAGING.value


# ============================================================================
# 反馈风格定义（场景化描述）
# ============================================================================

FEEDBACK_STYLES: Dict[str, Dict[str, str]] = {
    FeedbackStyle.ENCOURAGING.value: {
        "label": "鼓励",
        "tone_desc": "像一个一直站在你这边的老朋友，先看见你做到的事，再轻轻推你一把",
        "guidance": "肯定日记里具体的努力和小进步，把困难描述成可以跨过去的坎，结尾给一句有温度的打气。",
        "avoid": "不要空泛地说'你很棒'，不要忽视日记里提到的难受情绪",
    },
    FeedbackStyle.HONEST.value: {
        "label": "直言",
        "tone_desc": "像一个靠谱的前辈，说话直接但不伤人",
        "guidance": "指出日记里反复出现的问题或回避的地方，给出一到两个可以马上尝试的具体改变。",
        "avoid": "不要说教，不要下结论式地评判人格，不要夸大问题",
    },
    FeedbackStyle.EMPATHETIC.value: {
        "label": "共情",
        "tone_desc": "像一个安静听你说完的人，先接住情绪，再慢慢回应",
        "guidance": "用自己的话复述用户今天的感受，承认这些感受是合理的，少给建议，多给陪伴感。",
        "avoid": "不要急着解决问题，不要用'至少''其实还好'这类淡化情绪的说法",
    },
    FeedbackStyle.ANALYTICAL.value: {
        "label": "分析",
        "tone_desc": "像一个细心的心理教练，帮你把一天拆开来看",
        "guidance": "梳理触发情绪的事件、当时的想法和行为反应，点出它们之间的联系，最后给一个观察角度。",
        "avoid": "不要堆砌心理学术语，不要做诊断",
    },
}


def normalize_feedback_style(style: str) -> str:
    value = str(style or "").strip().lower()
    return value if value in FEEDBACK_STYLES else ""


def get_style_options() -> List[Dict[str, str]]:
    return [
        {"key": key, "label": info["label"], "desc": info["tone_desc"]}
        for key, info in FEEDBACK_STYLES.items()
    ]


_LANGUAGE_RULE = "使用与日记原文相同的语言作答。"


# ============================================================================
# 单篇日记
# ============================================================================

def build_summary_prompt(diary_content: str) -> Tuple[str, str]:
    system_prompt = "你是一名情绪日记助手，擅长用简短的话概括一天的事件和情绪。" + _LANGUAGE_RULE
    user_prompt = (
        "请把下面这篇日记概括成 2-3 句话，写清楚发生了什么、主要情绪是什么、情绪强弱如何。\n"
        "只输出概括内容，不要加标题或评价。\n\n"
        f"日记：\n{diary_content}"
    )
    return system_prompt, user_prompt


def build_feedback_prompt(diary_content: str, style: str) -> Tuple[str, str]:
    info = FEEDBACK_STYLES.get(normalize_feedback_style(style), FEEDBACK_STYLES[DEFAULT_FEEDBACK_STYLE])
    system_prompt = (
        f"你是一名陪伴用户写情绪日记的伙伴，说话风格{info['tone_desc']}。" + _LANGUAGE_RULE
    )
    user_prompt = (
        f"请读完下面的日记后写一段回应（150-300字）。\n"
        f"写法：{info['guidance']}\n"
        f"注意：{info['avoid']}。\n"
        "直接输出回应正文，不要解释你的写法。\n\n"
        f"日记：\n{diary_content}"
    )
    return system_prompt, user_prompt


# ============================================================================
# 区间分析（基于多篇日记的概括）
# ============================================================================

_PERIOD_SYSTEM = "你是一名情绪日记分析师，基于用户一段时间内的日记概括做整体回顾。" + _LANGUAGE_RULE


def build_period_summary_prompt(combined_summaries: str, start_date: date, end_date: date) -> Tuple[str, str]:
    user_prompt = (
        f"以下是用户在 {start_date.isoformat()} 至 {end_date.isoformat()} 期间的日记概括，按时间顺序排列，"
        "每段之间以空行分隔。\n"
        "请写一段 200 字左右的整体回顾：这段时间主要经历了什么，整体情绪基调如何变化。\n\n"
        f"{combined_summaries}"
    )
    return _PERIOD_SYSTEM, user_prompt


def build_emotional_pattern_prompt(combined_summaries: str) -> Tuple[str, str]:
    user_prompt = (
        "根据以下日记概括，分析用户的情绪模式：哪些情绪反复出现，常见的触发场景是什么，"
        "情绪在一周内或不同场景下有没有规律。用 3-5 个要点说明。\n\n"
        f"{combined_summaries}"
    )
    return _PERIOD_SYSTEM, user_prompt


def build_growth_pattern_prompt(combined_summaries: str) -> Tuple[str, str]:
    user_prompt = (
        "根据以下日记概括，找出用户在这段时间里的成长迹象：应对方式的变化、新的尝试、"
        "对自己的新认识。只写日记里有依据的内容。\n\n"
        f"{combined_summaries}"
    )
    return _PERIOD_SYSTEM, user_prompt


def build_recommendations_prompt(combined_summaries: str) -> Tuple[str, str]:
    user_prompt = (
        "根据以下日记概括，给用户 3 条接下来可以尝试的具体建议，每条说明适用的场景。"
        "建议要小而可执行，不要泛泛而谈。\n\n"
        f"{combined_summaries}"
    )
    return _PERIOD_SYSTEM, user_prompt
