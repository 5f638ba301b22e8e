# ── Daily story capture prompts: 30-day rotation ──────────────────────────────

CATEGORY_LABELS = {
    "today":    "Present Awareness",
    "past":     "Memory Excavation",
    "people":   "People",
    "triggers": "Specific Triggers",
    "open":     "Open Reflection",
}

# (day, category, prompt, follow-up or None)
STORY_PROMPTS = [
    # Week 1: present awareness
    (1,  "today", "What's one thing that happened today that surprised you - even a little?", None),
    (2,  "today", "Did you have any conversation today that made you think? What was said?", None),
    (3,  "today", "What moment today made you feel something - frustration, joy, curiosity, anything?", None),
    (4,  "today", "Did you notice anything today that others probably walked past?", None),
    (5,  "today", "What's something you learned today - from a sefer, a person, or an experience?", None),
    (6,  "today", "Was there a moment today where you had to make a choice? What did you choose?", None),
    (7,  "today", "What's one thing you saw today that you want to remember?", None),

    # Week 2: memory excavation
    (8,  "past", "Think of a teacher/rebbe. What's ONE thing they said or did that stuck with you?", None),
    (9,  "past", "What's a time you were wrong about something you were sure about?", None),
    (10, "past", "Who's someone who believed in you? What did they do or say?", None),
    (11, "past", "What's a place that holds a memory? Describe the place and what happened there.",
         "What do you see? What do you feel?"),
    (12, "past", "What's something difficult you went through that changed you?", None),
    (13, "past", "When did you witness someone do the right thing when it would've been easier not to?", None),
    (14, "past", "What's a question about life/Torah/Hashem that you wrestled with? Did you find an answer?", None),

    # Week 3: people
    (15, "people", "Who taught you something without knowing they were teaching?", None),
    (16, "people", "Think of your father/mother. What's one specific moment you remember?", None),
    (17, "people", "Who's someone you admire? What specifically do you admire about them?", None),
    (18, "people", "Think of a chavrusa or student. What moment stands out?", None),
    (19, "people", "Who showed you what NOT to do? What did you learn?", None),
    (20, "people", "Who surprised you - someone you misjudged, for better or worse?", None),
    (21, "people", "Who do you wish you could thank? What would you say?", None),

    # Week 4: specific triggers
    (22, "triggers", "Think of a shul you've been in. What memory comes?", None),
    (23, "triggers", "Think of a sefer. Is there one that changed how you think? What happened?", None),
    (24, "triggers", "Think of a Shabbos. Any specific one stand out? Why?", None),
    (25, "triggers", "Think of a simcha - wedding, bris, bar mitzvah. Any moment stay with you?", None),
    (26, "triggers", "Think of a difficult time - illness, loss, hardship. What got you through?", None),
    (27, "triggers", "Think of a trip or journey. What happened that was unexpected?", None),
    (28, "triggers", "Think of food/a meal. Any meal carry a memory?", None),

    # Days 29–30: open
    (29, "open", "What keeps coming back to you that you haven't captured yet?", None),
    (30, "open", "Look at your recent captures. What patterns do you see? What wants more attention?", None),
]

ROTATION_DAYS = len(STORY_PROMPTS)

TODAY_PROMPTS = [
    "What happened today that surprised you?",
    "What conversation stood out today?",
    "What moment made you feel something today?",
    "What did you notice today that others might have missed?",
    "What's one thing from today worth remembering?",
]


def _as_dict(entry):
    day, category, prompt, follow_up = entry
    return {
        "day": day,
        "category": category,
        "category_label": CATEGORY_LABELS[category],
        "prompt": prompt,
        "follow_up": follow_up,
    }


def get_todays_prompt(capture_count):
    """Prompt for the next rotation day given how many captures exist."""
    return _as_dict(STORY_PROMPTS[capture_count % ROTATION_DAYS])


def get_prompt_by_day(day):
    for entry in STORY_PROMPTS:
        if entry[0] == day:
            return _as_dict(entry)
    return None


def next_past_prompt_day(captures):
    """Rotation day to offer next: one past the number of rotation captures, wrapping at 30."""
    rotation = sum(1 for c in captures if (c.prompt_day or 0) > 0)
    return rotation % ROTATION_DAYS + 1
