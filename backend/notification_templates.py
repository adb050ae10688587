"""
Dickerchen - Notification Texts
Reminder bodies per user category and time slot, plus slot titles.

Placeholders: {name}, {today_total}, {remaining}, {daily_goal}
"""

from typing import Dict, List

from models import TimeSlot, UserCategory


MESSAGE_TEMPLATES: Dict[UserCategory, Dict[TimeSlot, List[str]]] = {
    UserCategory.NEW: {
        TimeSlot.MORNING: [
            "Guten Morgen {name}! Start in den Tag mit deinen Dicken! 🌅",
            "{name}, der Tag beginnt - Zeit für Push-ups! 💪",
        ],
        TimeSlot.AFTERNOON: [
            "Hey {name}! Nachmittag ist Push-up Zeit! 🏋️‍♂️",
            "{name}, mach deine Dicken bevor der Tag vorbei ist! 🔥",
        ],
        TimeSlot.EVENING: [
            "Noch schnell {name}! Ein paar Dicken vor dem Feierabend! ⚡",
            "{name}, Abendroutine: Push-ups nicht vergessen! 🌙",
        ],
        TimeSlot.CLOSE_TO_GOAL: [
            "{name}, nur noch {remaining} bis zu deinen ersten {daily_goal}! 🎯",
            "Fast da {name}! {remaining} Dicke fehlen noch! 💪",
        ],
    },
    UserCategory.CASUAL: {
        TimeSlot.MORNING: [
            "Morgen {name}! Deine täglichen Dicken warten! 🌞",
            "{name}, beginne den Tag stark mit Push-ups! 💪",
        ],
        TimeSlot.AFTERNOON: [
            "Hey {name}! Zeit für deine Push-up Challenge! 🏆",
            "{name}, nachmittags Push-ups machen glücklich! 😊",
        ],
        TimeSlot.EVENING: [
            "{name}, der Tag neigt sich - Dicken-Time! 🌅",
            "Abend-Reminder {name}: Push-ups! 💪",
        ],
        TimeSlot.CLOSE_TO_GOAL: [
            "{name}, {today_total} geschafft - nur noch {remaining}! 🎯",
            "Das Ziel ist in Sicht {name}: noch {remaining} Dicke! 🔥",
        ],
    },
    UserCategory.ACTIVE: {
        TimeSlot.MORNING: [
            "Guten Morgen {name}! Du schaffst das heute wieder! 🚀",
            "{name}, starte durch mit deinen Dicken! 🔥",
        ],
        TimeSlot.AFTERNOON: [
            "Hey {name}! Du bist bei {today_total} - weiter so! 💪",
            "{name}, du machst das super! Mehr Dicken? 🏋️‍♂️",
        ],
        TimeSlot.EVENING: [
            "Fast geschafft {name}! Nur noch {remaining} bis zum Ziel! 🎯",
            "{name}, du bist so nah dran! Gib alles! ⚡",
        ],
        TimeSlot.CLOSE_TO_GOAL: [
            "{name}, {remaining} Dicke und die {daily_goal} stehen! 🎯",
            "Letzter Satz {name}! Nur noch {remaining}! ⚡",
        ],
    },
    UserCategory.ADVANCED: {
        TimeSlot.MORNING: [
            "Morgen Champion {name}! Bereit für neue Rekorde? 🏆",
            "{name}, du weißt wie's geht - los geht's! 💪",
        ],
        TimeSlot.AFTERNOON: [
            "Hey {name}! Bei {today_total} Dicken - machst du weiter? 🔥",
            "{name}, du bist eine Push-up Maschine! 🔥",
        ],
        TimeSlot.EVENING: [
            "Wow {name}! {today_total} Dicken heute - Wahnsinn! 🏆",
            "{name}, du dominierst! Mehr als {daily_goal}? 🚀",
        ],
        TimeSlot.CLOSE_TO_GOAL: [
            "Champion {name}, hol dir die fehlenden {remaining}! 🏆",
            "{name}, {today_total} von {daily_goal} - das Finish gehört dir! 🎯",
        ],
    },
}


SLOT_TITLES: Dict[TimeSlot, str] = {
    TimeSlot.MORNING: "Guten Morgen! 🌅",
    TimeSlot.AFTERNOON: "Dickerchen Erinnerung! 💪",
    TimeSlot.EVENING: "Letzte Chance! 🌙",
}

DEFAULT_TITLE = "Dickerchen! 💪"
CLOSE_TO_GOAL_TITLE = "Fast geschafft! 🎯"
CHALLENGE_TITLE = "Dickerchen Challenge! 💪"


def title_for(time_slot) -> str:
    """Title depends only on the slot; unknown slots get the generic title."""
    try:
        return SLOT_TITLES.get(TimeSlot(time_slot), DEFAULT_TITLE)
    except ValueError:
        return DEFAULT_TITLE


def templates_for(category: UserCategory, time_slot: TimeSlot) -> List[str]:
    """Template bodies for a category and slot, falling back to the afternoon set."""
    by_slot = MESSAGE_TEMPLATES.get(category, MESSAGE_TEMPLATES[UserCategory.CASUAL])
    return by_slot.get(time_slot) or by_slot[TimeSlot.AFTERNOON]


# ============================================
# CHALLENGE TEXTS
# ============================================

CHALLENGE_MESSAGES: Dict[str, str] = {
    "early_bird": "🌅 Wow! {leader} hat schon um {hour} Uhr die vollen {daily_goal} erreicht! Bist du der nächste? 💪",
    "leadership_change": "👑 {leader} hat die Führung übernommen mit {total} Dicken! Schnell, hol dir den ersten Platz zurück! 🏃‍♂️",
    "close_race": "🔥 Nur noch {gap} Dicke bis zum ersten Platz! {leader} ist in Reichweite! 🎯",
    "lazy_reminder": "😴 {leader} ist schon bei {total} Dicken und du pennst noch? Zeit aufzuwachen! ⏰",
}
