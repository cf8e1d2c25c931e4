from __future__ import annotations

from typing import Final

SUPPORTED_LANGUAGES: Final[set[str]] = {"en", "zh"}

MESSAGES: Final[dict[str, dict[str, str]]] = {
    "en": {
        "group_created": "Group created.",
        "group_updated": "Group updated.",
        "group_deleted": "Group deleted.",
        "group_create_failed": "Could not create the group.",
        "group_update_failed": "Could not update the group.",
        "group_delete_failed": "Could not delete the group. Remove its habits and rewards first.",
        "habit_created": "Habit created.",
        "habit_updated": "Habit updated.",
        "habit_deleted": "Habit deleted.",
        "habit_create_failed": "Could not create the habit.",
        "habit_update_failed": "Could not update the habit.",
        "habit_delete_failed": "Could not delete the habit.",
        "habit_completed": "Well done! +{energy} energy.",
        "habit_complete_failed": "Could not record the habit completion.",
        "reward_created": "Reward created.",
        "reward_updated": "Reward updated.",
        "reward_deleted": "Reward deleted.",
        "reward_create_failed": "Could not create the reward.",
        "reward_update_failed": "Could not update the reward.",
        "reward_delete_failed": "Could not delete the reward.",
        "reward_redeemed": "Redeemed: {name}.",
        "reward_redeem_failed": "Could not redeem the reward.",
        "reward_already_redeemed": "{name} has already been redeemed.",
        "insufficient_energy": "Not enough energy: {cost} needed, {current} available.",
        "no_session": "Sign in first.",
        "not_found": "Nothing found with that id.",
        "load_failed": "Could not load application data.",
        "refreshed": "Data refreshed.",
        "reason_completed": "Completed habit: {name}",
        "reason_redeemed": "Redeemed reward: {name}",
        "deleted_habit": "Deleted habit",
        "deleted_group": "Deleted group",
        "public_pool": "Public pool",
        "freq_daily": "{times} times a day",
        "freq_weekly": "{times} times a week",
        "freq_weekly_days": "Every week on {days}, {times} times",
        "freq_monthly": "{times} times a month",
        "freq_custom": "Every {period} days, {times} times",
        "weekdays": "Sun,Mon,Tue,Wed,Thu,Fri,Sat",
        "weekday_sep": ", ",
    },
    "zh": {
        "group_created": "分组已创建",
        "group_updated": "分组已更新",
        "group_deleted": "分组已删除",
        "group_create_failed": "创建分组失败",
        "group_update_failed": "更新分组失败",
        "group_delete_failed": "删除分组失败",
        "habit_created": "习惯已创建",
        "habit_updated": "习惯已更新",
        "habit_deleted": "习惯已删除",
        "habit_create_failed": "创建习惯失败",
        "habit_update_failed": "更新习惯失败",
        "habit_delete_failed": "删除习惯失败",
        "habit_completed": "恭喜！获得 {energy} 点能量",
        "habit_complete_failed": "记录习惯完成失败",
        "reward_created": "奖励已创建",
        "reward_updated": "奖励已更新",
        "reward_deleted": "奖励已删除",
        "reward_create_failed": "创建奖励失败",
        "reward_update_failed": "更新奖励失败",
        "reward_delete_failed": "删除奖励失败",
        "reward_redeemed": "已兑换奖励: {name}",
        "reward_redeem_failed": "兑换奖励失败",
        "reward_already_redeemed": "{name} 已经兑换过了",
        "insufficient_energy": "能量不足：需要 {cost} 点能量，当前只有 {current} 点",
        "no_session": "请先登录",
        "not_found": "未找到该项目",
        "load_failed": "无法加载应用数据",
        "refreshed": "数据已刷新",
        "reason_completed": "完成习惯: {name}",
        "reason_redeemed": "兑换奖励: {name}",
        "deleted_habit": "已删除的习惯",
        "deleted_group": "已删除的分组",
        "public_pool": "公共池",
        "freq_daily": "每天 {times} 次",
        "freq_weekly": "每周 {times} 次",
        "freq_weekly_days": "每周{days}，{times} 次",
        "freq_monthly": "每月 {times} 次",
        "freq_custom": "每 {period} 天 {times} 次",
        "weekdays": "周日,周一,周二,周三,周四,周五,周六",
        "weekday_sep": "、",
    },
}


def normalize_language_code(raw: str | None, default: str = "en") -> str:
    value = (raw or "").strip().lower()
    if value.startswith("zh"):
        return "zh"
    if value.startswith("en"):
        return "en"
    return default if default in SUPPORTED_LANGUAGES else "en"


def t(key: str, lang: str = "en", **kwargs: object) -> str:
    code = normalize_language_code(lang, default="en")
    template = MESSAGES.get(code, {}).get(key) or MESSAGES["en"].get(key) or key
    try:
        return template.format(**kwargs)
    except (KeyError, IndexError, ValueError):
        return template
