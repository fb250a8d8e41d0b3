"""Tasks module: task selection, dependencies, assignments, blockers and recurrence."""

from src.core.module import ScheduledJob


class TasksModule:
    """Tasks module for the task selection engine.

    Provides:
    - Task, location, time window and weather condition records
    - Dependency graph with cycle-safe insertion
    - Eligibility filtering and next-task selection
    - Assignment lifecycle with history and gratification events
    - Blocker decomposition into sub-tasks
    - Recurring schedules that generate task instances
    - Advisory categorization for batching hints
    """

    @property
    def name(self) -> str:
        """Module name (unique identifier)."""
        return "tasks"

    @property
    def description(self) -> str:
        """Module description (human-readable)."""
        return "Context-aware task selection with dependencies, blockers and recurring schedules"

    def get_table_schemas(self) -> dict[str, str]:
        """Return table schemas for this module, in creation order."""
        return {
            "locations": """CREATE TABLE IF NOT EXISTS locations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        name TEXT NOT NULL,
        location_type TEXT NOT NULL CHECK (location_type IN ('physical', 'online', 'fuzzy')),
        latitude REAL,
        longitude REAL,
        address TEXT,
        category TEXT,
        search_radius_km REAL,
        description TEXT,
        CHECK (
            (location_type = 'physical' AND latitude IS NOT NULL AND longitude IS NOT NULL
                AND category IS NULL AND search_radius_km IS NULL) OR
            (location_type = 'fuzzy' AND category IS NOT NULL AND search_radius_km > 0
                AND latitude IS NULL AND longitude IS NULL AND address IS NULL) OR
            (location_type = 'online' AND latitude IS NULL AND longitude IS NULL AND address IS NULL
                AND category IS NULL AND search_radius_km IS NULL)
        )
    )""",
            "time_windows": """CREATE TABLE IF NOT EXISTS time_windows (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        name TEXT NOT NULL,
        description TEXT,
        is_active INTEGER NOT NULL DEFAULT 0,
        started_at TEXT,
        ended_at TEXT
    )""",
            "weather_conditions": """CREATE TABLE IF NOT EXISTS weather_conditions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        name TEXT NOT NULL,
        condition_type TEXT NOT NULL
            CHECK (condition_type IN ('snow', 'rain', 'temperature_above', 'temperature_below', 'any')),
        threshold_value REAL,
        description TEXT
    )""",
            "tasks": """CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        location_id INTEGER REFERENCES locations(id) ON DELETE SET NULL,
        time_constraint_type TEXT CHECK (time_constraint_type IN (
            'absolute', 'relative_time_of_day', 'relative_solar', 'business_hours', 'after_event', 'recurring'
        )),
        absolute_start_time TEXT,
        absolute_end_time TEXT,
        relative_time_of_day TEXT CHECK (relative_time_of_day IN ('morning', 'afternoon', 'evening', 'night')),
        after_task_id INTEGER REFERENCES tasks(id) ON DELETE SET NULL,
        after_blocker_id INTEGER REFERENCES blockers(id) ON DELETE SET NULL,
        time_window_id INTEGER REFERENCES time_windows(id) ON DELETE SET NULL,
        weather_condition_id INTEGER REFERENCES weather_conditions(id) ON DELETE SET NULL,
        requires_weather_condition INTEGER NOT NULL DEFAULT 0,
        base_priority INTEGER NOT NULL DEFAULT 50 CHECK (base_priority >= 0 AND base_priority <= 100),
        calculated_priority INTEGER NOT NULL DEFAULT 50
            CHECK (calculated_priority >= 0 AND calculated_priority <= 100),
        deadline TEXT,
        deadline_urgency_multiplier REAL NOT NULL DEFAULT 1.0 CHECK (deadline_urgency_multiplier >= 0),
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'assigned', 'blocked', 'completed', 'cancelled')),
        completed_at TEXT,
        completed_by_id TEXT,
        estimated_duration_minutes INTEGER,
        category TEXT,
        llm_generated_subtasks INTEGER NOT NULL DEFAULT 0,
        parent_task_id INTEGER REFERENCES tasks(id) ON DELETE SET NULL,
        created_by_id TEXT
    )""",
            "task_dependencies": """CREATE TABLE IF NOT EXISTS task_dependencies (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        depends_on_task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        UNIQUE(task_id, depends_on_task_id),
        CHECK (task_id != depends_on_task_id)
    )""",
            "recurring_schedules": """CREATE TABLE IF NOT EXISTS recurring_schedules (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        recurrence_type TEXT NOT NULL CHECK (recurrence_type IN ('daily', 'weekly', 'monthly', 'custom')),
        time_of_day TEXT CHECK (time_of_day IN ('morning', 'afternoon', 'evening', 'night')),
        day_of_week INTEGER CHECK (day_of_week >= 0 AND day_of_week <= 6),
        day_of_month INTEGER CHECK (day_of_month >= 1 AND day_of_month <= 31),
        cron_expression TEXT,
        time_window_id INTEGER REFERENCES time_windows(id) ON DELETE SET NULL,
        next_occurrence TEXT NOT NULL,
        last_generated_at TEXT,
        is_active INTEGER NOT NULL DEFAULT 1
    )""",
            "task_assignments": """CREATE TABLE IF NOT EXISTS task_assignments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        user_id TEXT NOT NULL,
        task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        assigned_at TEXT NOT NULL,
        started_at TEXT,
        completed_at TEXT,
        assigned_latitude REAL,
        assigned_longitude REAL,
        is_active INTEGER NOT NULL DEFAULT 1
    )""",
            "blockers": """CREATE TABLE IF NOT EXISTS blockers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        description TEXT NOT NULL,
        resolved INTEGER NOT NULL DEFAULT 0,
        resolved_at TEXT,
        resolution_notes TEXT,
        created_by_id TEXT
    )""",
            "task_history": """CREATE TABLE IF NOT EXISTS task_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        user_id TEXT NOT NULL,
        event_type TEXT NOT NULL
            CHECK (event_type IN ('started', 'completed', 'blocked', 'cancelled', 'gratification')),
        blocker_id INTEGER REFERENCES blockers(id) ON DELETE SET NULL,
        gratification_message TEXT,
        notes TEXT,
        occurred_at TEXT NOT NULL
    )""",
            "task_categories": """CREATE TABLE IF NOT EXISTS task_categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        name TEXT NOT NULL UNIQUE,
        description TEXT,
        keywords TEXT NOT NULL DEFAULT '[]',
        batch_compatible INTEGER NOT NULL DEFAULT 1
    )""",
            "task_category_assignments": """CREATE TABLE IF NOT EXISTS task_category_assignments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        category_id INTEGER NOT NULL REFERENCES task_categories(id) ON DELETE CASCADE,
        confidence_score REAL NOT NULL CHECK (confidence_score >= 0 AND confidence_score <= 1),
        assigned_by_llm INTEGER NOT NULL DEFAULT 0,
        UNIQUE(task_id, category_id)
    )""",
        }

    def get_indexes(self) -> list[str]:
        """Return indexes for this module's tables."""
        return [
            "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks (status)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_location_id ON tasks (location_id)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_deadline ON tasks (deadline)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_parent_task_id ON tasks (parent_task_id)",
            "CREATE INDEX IF NOT EXISTS idx_task_dependencies_task_id ON task_dependencies (task_id)",
            "CREATE INDEX IF NOT EXISTS idx_task_dependencies_depends_on ON task_dependencies (depends_on_task_id)",
            "CREATE INDEX IF NOT EXISTS idx_task_assignments_user_id ON task_assignments (user_id)",
            "CREATE INDEX IF NOT EXISTS idx_task_assignments_task_id ON task_assignments (task_id)",
            # Storage-level backstop for the one-active-assignment-per-user rule
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_task_assignments_active_user "
            "ON task_assignments (user_id) WHERE is_active = 1",
            "CREATE INDEX IF NOT EXISTS idx_blockers_task_id ON blockers (task_id)",
            "CREATE INDEX IF NOT EXISTS idx_task_history_task_id ON task_history (task_id)",
            "CREATE INDEX IF NOT EXISTS idx_task_history_user_id ON task_history (user_id)",
            "CREATE INDEX IF NOT EXISTS idx_recurring_schedules_next ON recurring_schedules (next_occurrence)",
        ]

    def get_scheduled_jobs(self) -> list[ScheduledJob]:
        """Return scheduled jobs for this module."""
        import src.modules.tasks.scheduler_jobs

        return src.modules.tasks.scheduler_jobs.get_scheduled_jobs()
