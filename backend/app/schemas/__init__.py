from .calendar import (
    CalendarConnectionStatus,
    CalendarStatusResponse,
    ConnectUrlResponse,
    FullSyncResult,
    SyncConfig,
    SyncFailure,
    SyncSettingsUpdate,
)
