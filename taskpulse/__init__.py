"""TaskPulse core library: task model, statistics and sync layer.

Public API re-exports for convenient imports:
    from taskpulse import TaskStore, build_stats, day_key, ...
"""

# Workspace & settings
from taskpulse.workspace import (
    Settings,
    workspace_root,
    load_settings,
    get_user_timezone,
    resolve_timezone,
    now_in,
    now_local,
    now_ms,
    settings_path,
    cache_path,
    log_dir,
)

# Calendar
from taskpulse.dates import (
    day_key,
    parse_day_key,
    add_days,
    start_of_week_monday,
    week_keys_mon_sun,
    label_weekday_en,
    label_date,
    weekday_key_from_date,
)

# Models
from taskpulse.models import (
    CATEGORIES,
    WORKOUT_PARTS,
    SERVER_TIMESTAMP,
    Task,
    PlanRow,
    WorkoutPlan,
    new_task,
    to_persisted,
    from_persisted,
    apply_patch,
)

# Statistics
from taskpulse.stats import (
    VALID_FILTERS,
    TaskCounts,
    WeekDayStat,
    CumulativeSeries,
    StatsSummary,
    compute_counts,
    compute_streak,
    weekly_aggregate,
    tasks_by_day,
    cumulative_series,
    filter_tasks,
    build_stats,
)

# Chart geometry
from taskpulse.chart import (
    AreaChart,
    nice_rounded_max,
    smooth_path,
    build_area_chart,
    render_svg,
)

# Collaborators & sync
from taskpulse.cache import LocalCache
from taskpulse.remote import RemoteStore, RemoteStoreError, MemoryRemoteStore
from taskpulse.store import Principal, SyncState, TaskStore, build_store
