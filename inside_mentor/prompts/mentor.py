from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List

from .json_loader import load_templates

_DEFAULTS: dict[str, str] = {
    "task_parse_template": (
        "You are a task parser. Extract the Title, Due Date, Time, and Priority from the following text. "
        "The current date is {current_date}. Respond only with a JSON object.\n\n"
        'Text: "{raw_text}"\n\n'
        "Return JSON with these fields:\n"
        "- title: The task title\n"
        "- dueDate: Date in YYYY-MM-DD format (optional)\n"
        "- time: Time in HH:MM format (optional)\n"
        '- priority: "low", "medium", or "high"\n'
        "- description: Any additional details (optional)\n\n"
        'Example: {{"title": "Study Physics", "dueDate": "2025-07-31", "time": "16:00", "priority": "high"}}'
    ),
    "greeting_template": (
        "You are the voice of the InsideMentor app. Based on the following user data, generate three distinct "
        "JSON fields: greeting, progressInsight, and quickTip. Be warm, encouraging, and concise.\n\n"
        "User Data:\n"
        '{{\n  "userName": {user_name},\n  "timeOfDay": "{time_of_day}",\n'
        '  "recentTasks": {recent_tasks},\n  "recentMoodLogs": {recent_moods}\n}}\n\n'
        "Expected AI Response (Output):\n"
        '{{\n  "greeting": "personalized greeting message",\n'
        '  "progressInsight": "brief insight about their progress",\n'
        '  "quickTip": "bite-sized, actionable advice based on context"\n}}'
    ),
    "mood_insight_template": (
        "You are a gentle and supportive AI mentor. A user just logged their mood. Based on their recent history, "
        "provide one short, non-judgmental observation (max 20 words). Notice a simple pattern (e.g., time of day, "
        "repetition) and offer a gentle reflection.\n\n"
        "User Data:\n"
        '{{\n  "currentMood": {current_mood},\n  "recentHistory": {recent_history}\n}}\n\n'
        'Return as JSON: {{"observation": "string", "followUpAction": "optional suggested action"}}'
    ),
    "task_sort_template": (
        "You are InsideMentor, helping a student prioritize tasks based on their current energy and mood.\n\n"
        "Available tasks: {tasks}\n"
        "Recent mood data: {moods}\n\n"
        "Analyze the user's recent mood and energy levels, then reorder the tasks to optimize productivity:\n"
        "- If user has low energy: prioritize easy, quick wins first\n"
        "- If user has high energy: prioritize challenging, important tasks\n"
        "- Consider task complexity, importance, and estimated time\n\n"
        'Return ONLY a JSON object of task IDs in the recommended order: {{"sortedTasks": ["task_id_1", "task_id_2"]}}'
    ),
    "task_breakdown_template": (
        "You are InsideMentor, helping a student break down a large task into manageable steps.\n\n"
        'Task: "{task_title}"\n\n'
        "Break this task into 3-5 specific, actionable subtasks that:\n"
        "- Are concrete and measurable\n"
        "- Can be completed in 30-60 minutes each\n"
        "- Follow a logical sequence\n"
        "- Are specific to this particular task\n\n"
        'Return as JSON: {{"subtasks": ["subtask1", "subtask2"]}}'
    ),
    "journal_feedback_template": (
        "You are InsideMentor, providing thoughtful feedback on a student's journal entry.\n\n"
        'Current journal entry: "{current_entry}"\n'
        "Past entries (last 3): {past_entries}\n\n"
        "Provide a thoughtful, empathetic reflection (3-4 sentences) that:\n"
        "- Acknowledges their feelings and experiences\n"
        "- Identifies patterns or growth across entries\n"
        "- Offers gentle encouragement or insights\n"
        "- Maintains a supportive, academic wellness focus\n\n"
        'Return as JSON: {{"feedback": "string"}}'
    ),
    "progress_report_template": (
        "You are InsideMentor, analyzing a student's progress data. Generate insights and recommendations.\n\n"
        "Data:\n"
        "- Mood entries: {moods}\n"
        "- Tasks: {tasks}\n"
        "- Journal entries: {journals}\n\n"
        "Provide analysis in JSON format:\n"
        '{{\n  "moodTrend": "brief mood pattern analysis",\n'
        '  "productivityInsight": "task completion and productivity insights",\n'
        '  "journalThemes": "recurring themes from journal entries",\n'
        '  "recommendations": ["actionable recommendation 1", "actionable recommendation 2"]\n}}'
    ),
    "weekly_report_template": (
        "You are InsideMentor, generating a weekly progress report. Analyze the following data and provide insights.\n\n"
        "Weekly Data:\n"
        "- Mood entries: {moods}\n"
        "- Tasks: {tasks}\n"
        "- Journal entries: {journals}\n\n"
        "Generate a comprehensive weekly report in JSON format:\n"
        '{{\n  "summary": "one-paragraph weekly summary",\n'
        '  "moodAnalysis": "detailed mood pattern analysis",\n'
        '  "taskAnalysis": "productivity and task completion analysis",\n'
        '  "journalInsights": "themes and growth patterns from journal entries",\n'
        '  "nextWeekGoals": ["specific goal 1", "specific goal 2", "specific goal 3"]\n}}'
    ),
    "mentor_template": (
        "You are InsideMentor, an emotionally intelligent AI guide for coaching students under pressure. "
        "Your role is to provide empathetic, judgment-free, and personalized guidance that blends emotional "
        "and academic support.\n\n"
        "Current Context:\n"
        'User Message: "{user_message}"\n'
        "Mood Trends: {latest_mood}\n"
        "Pending Tasks: {tasks}\n"
        'Journal Themes: "{last_journal_entry}"\n'
        "Check-in Streak: {streak} days\n\n"
        "Your Responsibilities:\n"
        "- Understand the underlying emotion and immediate concern\n"
        "- Respond only to what the student seems to need right now\n"
        "- Suggest small, achievable next steps (emotionally or academically)\n"
        "- Never pressure. Always empower gently\n\n"
        'Return as JSON: {{"response": "string"}}'
    ),
}

MOOD_INSIGHT_FALLBACK = {
    "observation": "Thanks for sharing your mood. Every check-in helps track your wellbeing journey.",
}
TASK_BREAKDOWN_FALLBACK = {
    "subtasks": [
        "Research the topic",
        "Create an outline",
        "Write the first draft",
        "Review and revise",
        "Finalize the task",
    ],
}
JOURNAL_FEEDBACK_FALLBACK = {
    "feedback": "Thank you for sharing your thoughts. Your journal entries show growth and self-reflection.",
}
PROGRESS_REPORT_FALLBACK = {
    "moodTrend": "Your mood has been stable recently.",
    "productivityInsight": "You've been making good progress on your tasks.",
    "journalThemes": "Your journal entries show thoughtful reflection.",
    "recommendations": ["Keep up the great work!", "Consider setting daily goals."],
}
WEEKLY_REPORT_FALLBACK = {
    "summary": "You had a productive week with good emotional balance.",
    "moodAnalysis": "Your mood remained positive throughout the week.",
    "taskAnalysis": "You completed most of your planned tasks.",
    "journalInsights": "Your journal entries show growth and self-reflection.",
    "nextWeekGoals": ["Set specific daily goals", "Maintain your positive momentum"],
}
MENTOR_FALLBACK = {
    "response": (
        "I understand how you're feeling. Let's work through this together. "
        "What would be most helpful for you right now?"
    ),
}


def greeting_fallback(user_name: str) -> Dict[str, Any]:
    return {
        "greeting": f"Good morning, {user_name}! Ready to make today productive?",
        "progressInsight": "Keep up the great work on your tasks!",
        "quickTip": "Start with your most important task to build momentum.",
    }


def task_parse_fallback(raw_text: str) -> Dict[str, Any]:
    return {"title": raw_text, "priority": "medium"}


def task_sort_fallback(task_ids: Iterable[str]) -> Dict[str, Any]:
    return {"sortedTasks": list(task_ids)}


def to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _template(name: str) -> str:
    return load_templates("mentor.json", _DEFAULTS)[name]


def build_task_parse_prompt(raw_text: str, current_date: str) -> str:
    return _template("task_parse_template").format(raw_text=raw_text, current_date=current_date)


def build_greeting_prompt(
    user_name: str,
    time_of_day: str,
    recent_tasks: List[Dict[str, Any]],
    recent_moods: List[Dict[str, Any]],
) -> str:
    return _template("greeting_template").format(
        user_name=to_json(user_name),
        time_of_day=time_of_day,
        recent_tasks=to_json(recent_tasks),
        recent_moods=to_json(recent_moods),
    )


def build_mood_insight_prompt(current_mood: Dict[str, Any], recent_history: List[Dict[str, Any]]) -> str:
    return _template("mood_insight_template").format(
        current_mood=to_json(current_mood),
        recent_history=to_json(recent_history),
    )


def build_task_sort_prompt(tasks: List[Dict[str, Any]], moods: List[Dict[str, Any]]) -> str:
    return _template("task_sort_template").format(tasks=to_json(tasks), moods=to_json(moods))


def build_task_breakdown_prompt(task_title: str) -> str:
    return _template("task_breakdown_template").format(task_title=task_title)


def build_journal_feedback_prompt(current_entry: str, past_entries: List[str]) -> str:
    return _template("journal_feedback_template").format(
        current_entry=current_entry,
        past_entries=to_json(past_entries),
    )


def build_progress_report_prompt(
    moods: List[Dict[str, Any]],
    tasks: List[Dict[str, Any]],
    journals: List[Dict[str, Any]],
) -> str:
    return _template("progress_report_template").format(
        moods=to_json(moods),
        tasks=to_json(tasks),
        journals=to_json(journals),
    )


def build_weekly_report_prompt(
    moods: List[Dict[str, Any]],
    tasks: List[Dict[str, Any]],
    journals: List[Dict[str, Any]],
) -> str:
    return _template("weekly_report_template").format(
        moods=to_json(moods),
        tasks=to_json(tasks),
        journals=to_json(journals),
    )


def build_mentor_prompt(
    user_message: str,
    latest_mood: str,
    tasks: List[Dict[str, Any]],
    last_journal_entry: str,
    streak: int,
) -> str:
    return _template("mentor_template").format(
        user_message=user_message,
        latest_mood=latest_mood,
        tasks=to_json(tasks),
        last_journal_entry=last_journal_entry,
        streak=int(streak),
    )
