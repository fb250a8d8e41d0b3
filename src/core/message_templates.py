"""Centralized gratification messages recorded in task history.

All user-facing feedback strings live here so wording can change in one place.
"""

_COMPLETION_MESSAGES = (
    "✅ Nice work finishing *{title}*!",
    "\U0001f389 *{title}* is done. One less thing on your plate.",
    "\U0001f4aa You wrapped up *{title}*. Keep the momentum going!",
)


def completion_gratification(*, task_title: str, completed_count: int = 0) -> str:
    """Build the feedback message for a completed task.

    The wording rotates with the user's running completion count.
    """
    template = _COMPLETION_MESSAGES[completed_count % len(_COMPLETION_MESSAGES)]
    return template.format(title=task_title)


def blocker_gratification(*, task_title: str, subtask_count: int) -> str:
    """Build the feedback message for a reported blocker."""
    if subtask_count == 0:
        return (
            f"\U0001f44d Thanks for flagging what's blocking *{task_title}*. "
            f"It's on hold until the obstacle is cleared."
        )
    step_word = "step" if subtask_count == 1 else "steps"
    return (
        f"\U0001f9e9 Good call reporting the blocker on *{task_title}*. "
        f"It's been broken into {subtask_count} smaller {step_word}."
    )
