# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Persisted scan state.

A single :class:`ScanState` record drives resumption.  Each phase owns a
typed sub-state that exists only while the phase is in progress; the
``*_completed`` flags gate the fixed phase order.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from sitewarden.core.constants import (
    AuditPhase,
    DiscoveryPhase,
    ExternalPhase,
    IntegrityPhase,
    MalwarePhase,
    ScanStatus,
    ScanStep,
    StepStatus,
)
from sitewarden.models.finding import Finding
from sitewarden.models.site import TableTarget


class StepCount(BaseModel):
    checked: int = 0
    found: int = 0


class FinalMessage(BaseModel):
    text: str
    detail: str = ""
    box_class: str = "clean"


class ModifiedFile(BaseModel):
    path: str
    size: int = 0
    mtime: str = ""


class IntegrityState(BaseModel):
    phase: IntegrityPhase = IntegrityPhase.START
    checksums: dict[str, str] = Field(default_factory=dict)
    checksum_type: str = "md5"
    modified: list[ModifiedFile] = Field(default_factory=list)
    checked: int = 0


class SpamState(BaseModel):
    offset: int = 0
    batch_size: int = 200
    checked: int = 0
    found: int = 0


class PasswordState(BaseModel):
    offset: int = 0
    checked: int = 0
    found: int = 0
    high_risk: int = 0


class AuditState(BaseModel):
    phase: AuditPhase = AuditPhase.USERS
    users_checked: int = 0
    users_found: int = 0
    options_checked: int = 0
    options_found: int = 0


class DatabaseState(BaseModel):
    tables: list[TableTarget] = Field(default_factory=list)
    current: int = 0
    offset: int = 0
    batch_size: int = 500
    table_counts: dict[str, StepCount] = Field(default_factory=dict)


class ExternalDiscoveryState(BaseModel):
    phase: ExternalPhase = ExternalPhase.DISCOVERY
    stack: list[str] = Field(default_factory=list)
    seen: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    initialized: bool = False


class DiscoveryState(BaseModel):
    phase: DiscoveryPhase = DiscoveryPhase.INTERNAL
    external: ExternalDiscoveryState | None = None
    server_files: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    seen_realpaths: dict[str, str] = Field(default_factory=dict)
    duplicate_count: int = 0
    started: bool = False


class AdaptiveState(BaseModel):
    chunk_size: int | None = None
    fast_count: int = 0
    last_time: float | None = None


class ScanState(BaseModel):
    status: ScanStatus = ScanStatus.IDLE
    current_step: ScanStep | None = None
    current_folder: str = ""
    started: str | None = None
    completed: str | None = None
    scan_start_time: float | None = None
    elapsed: float | None = None
    progress: int = 0
    progress_frozen: bool = False
    scanned: int = 0
    suspicious: int = 0
    errors: int = 0
    initialized: bool = False
    is_scheduled_scan: bool = False
    force_cancelled: bool = False
    patterns_source: str | None = None

    findings: list[Finding] = Field(default_factory=list)
    step_counts: dict[str, StepCount] = Field(default_factory=dict)
    step_status: dict[str, StepStatus] = Field(default_factory=dict)
    step_error: dict[str, str] = Field(default_factory=dict)
    final_message: FinalMessage | None = None

    plugin: IntegrityState | None = None
    plugin_check_completed: bool = False
    core: IntegrityState | None = None
    core_check_completed: bool = False
    spam: SpamState | None = None
    spamvertising_content_completed: bool = False
    password: PasswordState | None = None
    password_strength_completed: bool = False
    audit: AuditState | None = None
    user_option_audit_completed: bool = False
    database: DatabaseState | None = None
    database_deep_completed: bool = False
    discovery: DiscoveryState | None = None
    file_list_completed: bool = False

    malware_phase: MalwarePhase | None = None
    chunk_start: int | None = None
    file_list: list[str] | None = None
    total_files: int = 0
    adaptive: AdaptiveState = Field(default_factory=AdaptiveState)

    def set_count(self, step: ScanStep, checked: int, found: int) -> None:
        self.step_counts[step] = StepCount(checked=checked, found=found)

    def strip_cursors(self) -> None:
        """Drop every resumable cursor and phase scratch field, keeping findings."""
        self.file_list = None
        self.chunk_start = None
        self.initialized = False
        self.malware_phase = None
        self.current_step = None
        self.plugin = None
        self.core = None
        self.spam = None
        self.password = None
        self.audit = None
        self.database = None
        self.discovery = None
        self.total_files = 0
        self.adaptive = AdaptiveState()


class ScanProgress(BaseModel):
    """Read-only snapshot returned to callers polling a scan."""

    state: ScanState
    progress: int = 0
    threats: int = 0
    ignored: int = 0
    patterns_source: str = ""

    @property
    def status(self) -> ScanStatus:
        return self.state.status
