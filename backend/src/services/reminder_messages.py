"""
Localized wording for task reminders.

Each catalog holds the notification title plus one template per reminder
kind. Templates are str.format strings taking ``title`` and, for the
hour-based wording, ``hours``.
"""

from typing import Dict

DEFAULT_LOCALE = "en"

MESSAGE_CATALOGS: Dict[str, Dict[str, str]] = {
    "en": {
        "title": "Task Reminder",
        "due_today": 'The task "{title}" is due today!',
        "due_tomorrow": 'The task "{title}" is due tomorrow!',
        "due_in_hours": 'The task "{title}" is due in {hours} hours',
        "overdue": 'The task "{title}" is overdue!',
    },
    "pt-BR": {
        "title": "Lembrete de Tarefa",
        "due_today": 'A tarefa "{title}" vence hoje!',
        "due_tomorrow": 'A tarefa "{title}" vence amanhã!',
        "due_in_hours": 'A tarefa "{title}" vence em {hours} horas',
        "overdue": 'A tarefa "{title}" está atrasada!',
    },
}


def get_catalog(locale: str) -> Dict[str, str]:
    """Catalog for a locale; falls back to the language, then to English."""
    if locale in MESSAGE_CATALOGS:
        return MESSAGE_CATALOGS[locale]
    language = (locale or "").replace("_", "-").split("-")[0].lower()
    for key, catalog in MESSAGE_CATALOGS.items():
        if key.split("-")[0].lower() == language:
            return catalog
    return MESSAGE_CATALOGS[DEFAULT_LOCALE]


def reminder_title(locale: str) -> str:
    return get_catalog(locale)["title"]


def format_reminder(kind: str, title: str, locale: str, hours: int = 0) -> str:
    """
    Render the message text for a reminder kind.

    Args:
        kind: Template key (due_today, due_tomorrow, due_in_hours, overdue)
        title: Task title
        locale: Catalog locale
        hours: Whole hours until due (due_in_hours only)
    """
    template = get_catalog(locale)[kind]
    return template.format(title=title, hours=hours)
