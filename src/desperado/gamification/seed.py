"""Config seed data: floors, loot box tiers, XP actions, the starter achievement set,
notification channels and onboarding interview questions."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from desperado.database import upsert
from desperado.db.models import (
    Achievement,
    Floor,
    LootBoxTier,
    NotificationChannel,
    OnboardingQuestion,
    XpAction,
)

logger = logging.getLogger(__name__)

FLOOR_SEED_DATA: list[dict] = [
    {
        "floor_number": 1,
        "name": "The Stairwell",
        "description": "Every crawler starts here. The only way is down.",
        "min_level": 1,
        "max_level": 10,
        "icon": "\U0001f6aa",
        "color": "#6B7280",
        "unlock_message": (
            "Welcome to the Desperado Club, Crawler. You have entered The Stairwell. "
            "The only way out is through. Have a great day."
        ),
    },
    {
        "floor_number": 2,
        "name": "The Over City",
        "description": "A sprawling maze of obligations and ambitions. At least you're not alone.",
        "min_level": 11,
        "max_level": 20,
        "icon": "\U0001f3d9️",
        "color": "#8B5CF6",
        "unlock_message": (
            "Crawler has descended to Floor 2: The Over City. The view is better from here. "
            "The stakes are higher. You've been warned."
        ),
    },
    {
        "floor_number": 3,
        "name": "The Iron Tangle",
        "description": "Everything is connected. Every task feeds another. Welcome to the machine.",
        "min_level": 21,
        "max_level": 30,
        "icon": "⚙️",
        "color": "#EF4444",
        "unlock_message": (
            "Floor 3: The Iron Tangle. At this point, The System is mildly impressed. "
            "Don't let it go to your head."
        ),
    },
    {
        "floor_number": 4,
        "name": "The Hunting Grounds",
        "description": "You're not just surviving anymore. You're hunting.",
        "min_level": 31,
        "max_level": 40,
        "icon": "\U0001f3af",
        "color": "#F59E0B",
        "unlock_message": (
            "Floor 4: The Hunting Grounds. Crawler has demonstrated a concerning level of productivity. "
            "The System is watching."
        ),
    },
    {
        "floor_number": 5,
        "name": "The Butcher's Masquerade",
        "description": "Behind every completed task is a graveyard of procrastination. Dance with it.",
        "min_level": 41,
        "max_level": 50,
        "icon": "\U0001f3ad",
        "color": "#DC2626",
        "unlock_message": (
            "Floor 5: The Butcher's Masquerade. At this level, most crawlers have either ascended "
            "or burned out. You're still here. Noted."
        ),
    },
    {
        "floor_number": 6,
        "name": "The Eye of the Bedlam Bride",
        "description": "Chaos is no longer your enemy. It's your medium.",
        "min_level": 51,
        "max_level": 60,
        "icon": "\U0001f441️",
        "color": "#7C3AED",
        "unlock_message": (
            "Floor 6: The Eye of the Bedlam Bride. The System has run out of clever things to say. "
            "You've outlasted the script. Congratulations, you absolute psychopath."
        ),
    },
    {
        "floor_number": 7,
        "name": "The Parade of Horribles",
        "description": "They said adulting gets easier. They lied. But you're still marching.",
        "min_level": 61,
        "max_level": 70,
        "icon": "\U0001f3aa",
        "color": "#BE123C",
        "unlock_message": (
            "Floor 7: The Parade of Horribles. At this point, even The System respects you. "
            "Don't tell anyone we said that."
        ),
    },
    {
        "floor_number": 8,
        "name": "This Inevitable Ruin",
        "description": "Everything falls apart eventually. You just keep rebuilding. That's the whole point.",
        "min_level": 71,
        "max_level": 80,
        "icon": "\U0001f3da️",
        "color": "#991B1B",
        "unlock_message": (
            "Floor 8: This Inevitable Ruin. You've pushed the boulder up the hill more times than we "
            "can count. Sisyphus would be proud. Have a great day."
        ),
    },
    {
        "floor_number": 9,
        "name": "Larracos, City of Dreams",
        "description": "You've built something real. The capital of your own making.",
        "min_level": 81,
        "max_level": 90,
        "icon": "\U0001f3f0",
        "color": "#D4AF37",
        "unlock_message": (
            "Floor 9: Larracos, City of Dreams. Crawler has reached the disputed lands. "
            "Everything you see is yours. Defend it."
        ),
    },
    {
        "floor_number": 10,
        "name": "The Primal Engine",
        "description": "You've become the system. The dungeon runs on your terms now.",
        "min_level": 91,
        "max_level": 100,
        "icon": "\U0001f525",
        "color": "#FFD700",
        "unlock_message": (
            "Floor 10: The Primal Engine. You have broken the game. The System would like to "
            "congratulate you but frankly finds it suspicious. Investigation pending. Have a great day."
        ),
    },
]

LOOT_BOX_TIER_SEED_DATA: list[dict] = [
    {
        "slug": "bronze",
        "name": "Bronze Box",
        "description": "A modest reward for modest accomplishments. Don't spend it all in one place.",
        "color": "#CD7F32",
        "icon": "\U0001f4e6",
        "sort_order": 1,
    },
    {
        "slug": "silver",
        "name": "Silver Box",
        "description": "Not bad. Not great. But certainly not bad. The System is tepidly impressed.",
        "color": "#C0C0C0",
        "icon": "\U0001f381",
        "sort_order": 2,
    },
    {
        "slug": "gold",
        "name": "Gold Box",
        "description": "Now we're talking. This box contains something actually worth having. Probably.",
        "color": "#FFD700",
        "icon": "✨",
        "sort_order": 3,
    },
    {
        "slug": "platinum",
        "name": "Platinum Box",
        "description": "Holy crap. You've earned the good stuff. The System grudgingly acknowledges your excellence.",
        "color": "#E5E4E2",
        "icon": "\U0001f48e",
        "sort_order": 4,
    },
]

XP_ACTION_SEED_DATA: list[dict] = [
    # Tasks
    {"slug": "task_complete_low", "name": "Complete task (low priority)", "base_xp": 10,
     "description": "It needed doing. You did it. +10 XP."},
    {"slug": "task_complete_medium", "name": "Complete task (medium priority)", "base_xp": 25,
     "description": "A responsible contribution to society. +25 XP."},
    {"slug": "task_complete_high", "name": "Complete task (high priority)", "base_xp": 50,
     "description": "Important things got done. The System approves. +50 XP."},
    {"slug": "task_complete_critical", "name": "Complete task (critical)", "base_xp": 100,
     "description": "Crisis averted. Barely. +100 XP."},
    # Habits
    {"slug": "habit_checkin", "name": "Habit check-in", "base_xp": 15,
     "description": "You showed up. That's more than most. +15 XP."},
    {"slug": "habit_streak_7", "name": "7-day streak bonus", "base_xp": 50,
     "description": "A full week of consistency. The bar was low and you cleared it. +50 XP."},
    {"slug": "habit_streak_30", "name": "30-day streak bonus", "base_xp": 200,
     "description": "A month of showing up. This is getting serious. +200 XP."},
    {"slug": "habit_streak_90", "name": "90-day streak bonus", "base_xp": 500,
     "description": "Ninety days. The habit owns you now. +500 XP."},
    # Goals
    {"slug": "goal_milestone", "name": "Goal milestone reached", "base_xp": 100,
     "description": "Progress was made. Measurable progress. +100 XP."},
    {"slug": "goal_completed", "name": "Goal completed", "base_xp": 500,
     "description": "A goal, fully achieved. The System is... satisfied. +500 XP."},
    # Finance
    {"slug": "budget_under_monthly", "name": "Budget category under limit", "base_xp": 200,
     "description": "You didn't overspend. In this economy. +200 XP."},
    # Shopping
    {"slug": "shopping_cleared", "name": "Shopping list cleared", "base_xp": 25,
     "description": "Provisions acquired. The dungeon is stocked. +25 XP."},
    # Meta
    {"slug": "daily_login", "name": "Daily login", "base_xp": 5,
     "description": "You showed up. Bare minimum. +5 XP."},
    # Tracked, not awarded directly
    {"slug": "party_bonus", "name": "Party task bonus (1.5x)", "base_xp": 0,
     "description": "Shared tasks earn 1.5x XP. Teamwork makes the dream work."},
    {"slug": "streak_break", "name": "Streak broken", "base_xp": -15,
     "description": "A streak has fallen. The silence is deafening. -15 XP."},
]


def _achievement(
    slug: str,
    name: str,
    description: str,
    category: str,
    tier: str,
    xp_reward: int,
    icon: str,
    loot_box_tier: str | None,
    trigger_type: str,
    trigger_config: dict[str, Any],
    *,
    is_hidden: bool = False,
    is_party: bool = False,
    is_repeatable: bool = False,
) -> dict:
    return {
        "slug": slug,
        "name": name,
        "description": description,
        "category": category,
        "tier": tier,
        "xp_reward": xp_reward,
        "icon": icon,
        "loot_box_tier": loot_box_tier,
        "trigger_type": trigger_type,
        "trigger_config": trigger_config,
        "is_hidden": is_hidden,
        "is_party": is_party,
        "is_repeatable": is_repeatable,
    }


ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Productivity
    _achievement(
        "first_blood", "First Blood",
        "You've completed your first task. Everybody has to start somewhere. Even you.",
        "productivity", "common", 25, "\U0001f5e1️", None, "task_count", {"threshold": 1},
    ),
    _achievement(
        "ten_down", "Ten Down",
        "Ten tasks completed. You're like a machine. A slow, occasionally distracted machine, "
        "but a machine nonetheless.",
        "productivity", "common", 50, "\U0001f51f", "bronze", "task_count", {"threshold": 10},
    ),
    _achievement(
        "centurion", "Centurion",
        "One hundred tasks. The System has officially stopped counting on its fingers for you. "
        "Reward: A grudging nod of respect.",
        "productivity", "rare", 300, "\U0001f4af", "gold", "task_count", {"threshold": 100},
    ),
    _achievement(
        "domestic_warlord", "Domestic Warlord",
        "You've completed every task on your list for an entire week. Holy crap. "
        "That's kinda fucked up how productive that is.",
        "productivity", "epic", 300, "⚔️", "gold", "task_streak",
        {"threshold": 7, "scope": "all_cleared"}, is_repeatable=True,
    ),
    _achievement(
        "speed_runner", "Speed Runner",
        "You completed a task within 1 hour of creation. Either it was easy or you're terrifyingly "
        "efficient. The System chooses not to investigate.",
        "productivity", "common", 25, "⚡", None, "speed_complete", {"max_minutes": 60},
        is_repeatable=True,
    ),
    _achievement(
        "the_floor_is_lava", "The Floor Is Lava",
        "Zero overdue tasks for 30 consecutive days. What are you, some kind of adult? Disgusting.",
        "productivity", "epic", 500, "\U0001f30b", "platinum", "zero_overdue", {"threshold": 30},
    ),
    _achievement(
        "procrastinator_redeemed", "Procrastinator Redeemed",
        "You completed a task you snoozed 5 or more times. Better late than never. Actually, no, it "
        "would have been better on time. But here we are.",
        "productivity", "uncommon", 50, "\U0001f634", "bronze", "custom",
        {"type": "snoozed_then_completed", "snooze_count": 5}, is_hidden=True, is_repeatable=True,
    ),
    _achievement(
        "its_not_my_fault", "It's Not My Fault",
        "You reassigned a task to the other crawler. Delegation or cowardice? The System doesn't judge. "
        "(The System absolutely judges.)",
        "social", "common", 10, "\U0001faf5", None, "custom", {"type": "task_reassigned"},
        is_hidden=True, is_repeatable=True,
    ),
    # Health / habits
    _achievement(
        "showing_up", "Showing Up Is Half the Battle",
        "You checked in to a habit for 7 consecutive days. The other half of the battle is continuing "
        "to show up. Good luck with that.",
        "streak", "uncommon", 75, "\U0001f4c5", "bronze", "habit_streak", {"threshold": 7},
        is_repeatable=True,
    ),
    _achievement(
        "streaker", "Streaker",
        "A 30-day habit streak. At this point the habit is less of a choice and more of a hostage "
        "situation. Stockholm syndrome has never been more productive.",
        "streak", "rare", 250, "\U0001f525", "silver", "habit_streak", {"threshold": 30},
        is_repeatable=True,
    ),
    _achievement(
        "cuck_entropy", "Cuck Entropy",
        "You've maintained all active habits for 90 consecutive days. Entropy is the natural state of "
        "the universe. You have told the universe to go fuck itself. Legendary.",
        "streak", "legendary", 1000, "\U0001f30c", "platinum", "combo_streak",
        {"threshold": 90, "scope": "all_habits"},
    ),
    _achievement(
        "touched_grass", "Touched Grass",
        "You completed an outdoor habit 7 days in a row. Fresh air. Sunlight. The things they say are "
        "good for you. They might be right. Don't tell them we said that.",
        "health", "uncommon", 75, "\U0001f33f", "bronze", "habit_streak", {"threshold": 7, "tag": "outdoor"},
        is_hidden=True, is_repeatable=True,
    ),
    _achievement(
        "your_mom_would_be_proud", "Your Mom Would Be Proud",
        "Every single habit, completed, for an entire month. Question: What do you call someone who "
        "does everything they're supposed to? Answer: Suspicious.",
        "health", "epic", 500, "\U0001f469", "gold", "combo_streak", {"threshold": 30, "scope": "all_habits"},
        is_repeatable=True,
    ),
    _achievement(
        "streak_funeral", "Requiem for a Streak",
        "A streak of 14+ days has fallen. The System observes a moment of silence. ...Moment over. "
        "Get back to work.",
        "streak", "common", 0, "⚰️", None, "custom", {"type": "streak_broken", "min_length": 14},
        is_repeatable=True,
    ),
    # Finance
    _achievement(
        "barely_functional_adult", "Barely Functional Adult",
        "You've kept all budget categories under their limits for 3 consecutive months. Question: What's "
        "the baseline for being a functioning member of society? Answer: This. This is the baseline. "
        "You just hit it.",
        "finance", "rare", 300, "\U0001f4b3", "gold", "budget_under", {"threshold": 3, "scope": "all_categories"},
    ),
    _achievement(
        "war_chest", "War Chest",
        "Your emergency fund goal has hit $1,000. That's enough to survive approximately 4 days in this "
        "economy. But sure, celebrate.",
        "finance", "rare", 250, "\U0001f4b0", "silver", "custom", {"type": "savings_milestone", "amount": 1000},
    ),
    _achievement(
        "budget_necromancer", "Budget Necromancer",
        "You brought an over-budget category back under its limit before month-end. The dead walk again. "
        "Your wallet breathes.",
        "finance", "uncommon", 100, "\U0001f480", "bronze", "custom", {"type": "budget_recovered"},
        is_hidden=True, is_repeatable=True,
    ),
    _achievement(
        "this_little_piggy", "This Little Piggy Went to Market",
        "You've cleared 10 shopping lists. Provisions have been acquired. The dungeon is stocked. "
        "The System acknowledges your service to the supply chain.",
        "productivity", "common", 50, "\U0001f437", "bronze", "shopping_count", {"threshold": 10},
    ),
    # Meta
    _achievement(
        "have_a_great_day", "Have a Great Day",
        "You've opened the app 30 days in a row. At this point you either love it or you can't stop. "
        "Both are acceptable to The System.",
        "meta", "rare", 200, "\U0001f305", "silver", "login_streak", {"threshold": 30},
    ),
    _achievement(
        "achievement_hunter", "Achievement Hunter",
        "You've unlocked 10 achievements. You're collecting these on purpose now, aren't you? "
        "The System sees you.",
        "meta", "uncommon", 100, "\U0001f3c6", "bronze", "custom", {"type": "achievement_count", "threshold": 10},
    ),
    _achievement(
        "floor_two", "Elevator Pitch",
        "You've reached Level 11 and descended to Floor 2: The Over City. The view is better from here. "
        "The stakes are higher.",
        "meta", "uncommon", 100, "\U0001f3d9️", "bronze", "level_reached", {"threshold": 11},
    ),
    # Party (both crawlers)
    _achievement(
        "party_first", "Stronger Together (Debatable)",
        "Both crawlers completed a shared task. The party has demonstrated basic cooperation. "
        "The bar is on the floor and you still only barely cleared it.",
        "party", "common", 50, "\U0001f91d", None, "custom", {"type": "party_task_completed"},
        is_party=True, is_repeatable=True,
    ),
    _achievement(
        "party_week", "The Party Clears the Floor",
        "Both crawlers completed all shared tasks for a full week. The System didn't think you had it "
        "in you. The System was almost wrong.",
        "party", "epic", 400, "\U0001f389", "gold", "party_task_streak", {"threshold": 7},
        is_party=True, is_repeatable=True,
    ),
    _achievement(
        "sync_streak", "Synchronized Suffering",
        "Both crawlers maintained the same habit for 14 consecutive days. Misery loves company. "
        "So does discipline, apparently.",
        "party", "rare", 200, "\U0001f517", "silver", "party_habit_sync", {"threshold": 14},
        is_party=True, is_repeatable=True,
    ),
    _achievement(
        "household_centurion", "Household Centurion",
        "The party has completed 100 shared tasks total. The household is functioning. "
        "The System is mildly alarmed.",
        "party", "rare", 300, "\U0001f3e0", "gold", "custom", {"type": "party_task_total", "threshold": 100},
        is_party=True,
    ),
    # Seasonal / special
    _achievement(
        "new_year_new_me", "New Year, New Me (Same You)",
        "You created a goal in January. Statistics suggest you'll abandon it by February. "
        "The System will be watching.",
        "seasonal", "common", 25, "\U0001f386", None, "custom", {"type": "january_goal"},
        is_hidden=True,
    ),
    _achievement(
        "tax_boss", "Tax Season Survivor",
        "You completed all tax-related tasks before April 15. B-B-B-Boss Battle: IRS, DEFEATED. "
        "The System finds the IRS unreasonable, which is saying something.",
        "seasonal", "epic", 300, "\U0001f4cb", "gold", "custom", {"type": "tax_tasks_complete", "deadline": "04-15"},
        is_hidden=True,
    ),
    _achievement(
        "friday_warrior", "Friday Warrior",
        "You completed all your tasks on a Friday. Most people phone it in. You went to war. "
        "The System respects the hustle.",
        "productivity", "uncommon", 50, "\U0001f5d3️", None, "custom", {"type": "all_tasks_friday"},
        is_hidden=True, is_repeatable=True,
    ),
    _achievement(
        "midnight_oil", "Burning the Midnight Oil",
        "You completed a task between midnight and 4am. Either you're dedicated or unhinged. "
        "The System does not distinguish between the two.",
        "meta", "uncommon", 25, "\U0001f319", None, "custom", {"type": "late_night_complete"},
        is_hidden=True, is_repeatable=True,
    ),
]

NOTIFICATION_CHANNEL_SEED_DATA: list[dict] = [
    {"slug": "web", "name": "Web"},
    {"slug": "discord", "name": "Discord"},
]

ONBOARDING_QUESTION_SEED_DATA: list[dict] = [
    {
        "question_key": "daily_routine",
        "question_text": (
            "Walk me through a typical day for you. What time do you wake up, what does your morning "
            "look like, and when do you usually wind down?"
        ),
        "category": "routine",
        "sort_order": 1,
    },
    {
        "question_key": "work_schedule",
        "question_text": (
            'What does your work situation look like? Regular hours, remote, hybrid? When are you fully "off" '
            "and available for household stuff?"
        ),
        "category": "routine",
        "sort_order": 2,
    },
    {
        "question_key": "household_split",
        "question_text": (
            "How do you and your partner currently split household responsibilities? Who handles what? "
            "Be honest, there are no wrong answers here."
        ),
        "category": "household",
        "sort_order": 3,
    },
    {
        "question_key": "household_friction",
        "question_text": (
            "What household tasks cause the most friction or stress between you two? Or just for you personally?"
        ),
        "category": "household",
        "sort_order": 4,
    },
    {
        "question_key": "current_goals",
        "question_text": (
            "What are the 2-3 things you most want to improve or accomplish in the next few months? "
            "Personal, professional, health, anything."
        ),
        "category": "goals",
        "sort_order": 5,
    },
    {
        "question_key": "pain_points",
        "question_text": (
            "What's the one thing that always falls through the cracks? The thing you keep meaning to do "
            "but never quite get to?"
        ),
        "category": "goals",
        "sort_order": 6,
    },
    {
        "question_key": "motivation_style",
        "question_text": (
            "What motivates you more: competition with others, personal bests, rewards, or avoiding "
            "consequences? No wrong answer, this helps me know how to support you."
        ),
        "category": "personality",
        "sort_order": 7,
    },
    {
        "question_key": "communication_pref",
        "question_text": (
            "How do you prefer to be reminded or nudged? Gentle suggestions, direct callouts, humor, or just "
            "put it on my list and I'll get to it?"
        ),
        "category": "preferences",
        "sort_order": 8,
    },
    {
        "question_key": "reward_preferences",
        "question_text": (
            "If you could earn rewards for getting stuff done, what would you want? Think treats, experiences, "
            "free time, whatever would actually motivate you."
        ),
        "category": "preferences",
        "sort_order": 9,
    },
    {
        "question_key": "boundaries",
        "question_text": (
            "Last one: is there anything you absolutely do NOT want the system to do? Topics to avoid, "
            "comparisons you hate, times you don't want to be bothered?"
        ),
        "category": "boundaries",
        "sort_order": 10,
    },
]


async def _upsert_all(db: AsyncSession, model: Any, rows: list[dict], key: str) -> int:  # noqa: ANN401
    for row in rows:
        stmt = upsert(db, model).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[key],
            set_={col: stmt.excluded[col] for col in row if col != key},
        )
        await db.execute(stmt)
    return len(rows)


async def seed_gamification(db: AsyncSession) -> dict[str, int]:
    """Upsert all config rows. Returns the number seeded per table."""
    counts = {
        "floors": await _upsert_all(db, Floor, FLOOR_SEED_DATA, "floor_number"),
        "loot_box_tiers": await _upsert_all(db, LootBoxTier, LOOT_BOX_TIER_SEED_DATA, "slug"),
        "xp_actions": await _upsert_all(db, XpAction, XP_ACTION_SEED_DATA, "slug"),
        "achievements": await _upsert_all(db, Achievement, ACHIEVEMENT_SEED_DATA, "slug"),
        "notification_channels": await _upsert_all(
            db, NotificationChannel, NOTIFICATION_CHANNEL_SEED_DATA, "slug"
        ),
        "onboarding_questions": await _upsert_all(
            db, OnboardingQuestion, ONBOARDING_QUESTION_SEED_DATA, "question_key"
        ),
    }
    await db.commit()
    logger.info("Seeded config tables: %s", counts)
    return counts
