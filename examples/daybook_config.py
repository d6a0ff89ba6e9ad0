"""daybook configuration - Python example

Copy to your project root as daybook_config.py.

Convention:
- CONFIG dict for static configuration (same structure as TOML)
- Functions named hook_* become hooks
"""

from loguru import logger

# =============================================================================
# Static Configuration (same structure as TOML)
# =============================================================================

CONFIG = {
    "journal": {
        "file": "journal.md",
    },
    "tags": {
        # "#1" in an entry or query becomes "#work"
        "favorites": {
            "1": "work",
            "2": "home",
            "3": "errand",
        },
    },
    "filters": {
        "default": "!tasks",
        "saved": {
            "work": "!tasks #work",
            "stale": "!tasks @overdue",
            "routine": "@recurring",
        },
    },
    "display": {
        "hide_completed": False,
    },
}


# =============================================================================
# Hooks
# =============================================================================

def hook_after_action(engine, kind, message):
    """Called after every executed, undone or redone action.

    Args:
        engine: the JournalEngine that ran it
        kind: "execute", "undo" or "redo"
        message: status text shown to the user, or None
    """
    if message:
        logger.info(f"[{kind}] {message}")
