"""
Macchine a stati delle sezioni UI.

Ogni sezione ha un enum chiuso di viste e una tabella di transizioni
ammesse; le transizioni partono solo da azioni esplicite dell'utente.
Entrare in una vista "lista" rifa' il fetch (come un mount).
"""
from __future__ import annotations

import enum
import logging
from datetime import date, timedelta
from typing import Any, Callable, Generic, Mapping, TypeVar

from .entities import Patient, SessionWithPatient
from .errors import PersistenceError, ValidationError
from .models import ServiceType, SessionLocation
from .reports import DailyStats, InvoiceDraft, build_invoice_draft, daily_stats
from .repositories import PatientRepository, SessionRepository, filter_patients

logger = logging.getLogger(__name__)

V = TypeVar("V", bound=enum.Enum)
T = TypeVar("T")


class InvalidTransition(RuntimeError):
    pass


class SubmitOutcome(enum.Enum):
    CREATED = "created"
    INVALID = "invalid"
    FAILED = "failed"
    IGNORED = "ignored"


# =========================
# Form
# =========================
class FormController(Generic[T]):
    """
    Stato di un form di creazione: errori per campo, invio in corso, fallimento.
    Un secondo invio mentre il primo e' in volo viene ignorato (niente doppia scrittura).
    """

    def __init__(self, create: Callable[[Mapping[str, Any]], T]):
        self._create = create
        self.errors: dict[str, str] = {}
        self.submitting = False
        self.failed = False
        self.created: T | None = None

    def reset(self) -> None:
        self.errors = {}
        self.failed = False

    def submit(self, data: Mapping[str, Any]) -> SubmitOutcome:
        if self.submitting:
            logger.warning("Submit ignored: a previous write is still in flight")
            return SubmitOutcome.IGNORED

        self.submitting = True
        self.reset()
        try:
            self.created = self._create(data)
        except ValidationError as e:
            self.errors = e.errors
            return SubmitOutcome.INVALID
        except PersistenceError:
            # dettaglio gia' loggato dal gateway: all'utente solo un flag
            self.failed = True
            return SubmitOutcome.FAILED
        finally:
            self.submitting = False
        return SubmitOutcome.CREATED


# =========================
# Base sezione
# =========================
class SectionController(Generic[V]):
    TRANSITIONS: dict[Any, frozenset[Any]] = {}

    def __init__(self, initial: V):
        self.view: V = initial
        self._enter(initial)

    def go(self, target: V) -> None:
        if target == self.view:
            return
        if target not in self.TRANSITIONS.get(self.view, frozenset()):
            raise InvalidTransition(f"{type(self).__name__}: {self.view.name} -> {target.name}")
        self.view = target
        self._enter(target)

    def _enter(self, view: V) -> None:
        pass


class _SessionFormMixin:
    """Form seduta + selettore pazienti attivi, condiviso da dashboard e log sedute."""

    patients: PatientRepository
    sessions: SessionRepository

    def _init_session_form(self) -> None:
        self.session_form: FormController = FormController(self.sessions.create_session)
        self.options_failed = False

    def patient_options(self, search: str | None = None) -> list[Patient]:
        try:
            options = self.patients.list_active_patients(search)
        except PersistenceError:
            self.options_failed = True
            return []
        self.options_failed = False
        return options


# =========================
# Dashboard
# =========================
class DashboardView(enum.Enum):
    TODAY = "today"
    LOG_SESSION = "log_session"


class DashboardController(_SessionFormMixin, SectionController[DashboardView]):
    TRANSITIONS = {
        DashboardView.TODAY: frozenset({DashboardView.LOG_SESSION}),
        DashboardView.LOG_SESSION: frozenset({DashboardView.TODAY}),
    }

    def __init__(
        self,
        patients: PatientRepository,
        sessions: SessionRepository,
        today: Callable[[], date] = date.today,
    ):
        self.patients = patients
        self.sessions = sessions
        self._today = today
        self.today_sessions: list[SessionWithPatient] = []
        self.stats = DailyStats(total_hours=0.0, patients_seen=0, total_sessions=0)
        self.load_failed = False
        self._init_session_form()
        super().__init__(DashboardView.TODAY)

    def _enter(self, view: DashboardView) -> None:
        if view is DashboardView.TODAY:
            self.refresh()
        else:
            self.session_form.reset()

    def refresh(self) -> None:
        try:
            self.today_sessions = self.sessions.list_today_sessions(self._today())
            self.load_failed = False
        except PersistenceError:
            self.today_sessions = []
            self.load_failed = True
        self.stats = daily_stats(self.today_sessions)

    def open_session_form(self) -> None:
        self.go(DashboardView.LOG_SESSION)

    def back(self) -> None:
        self.go(DashboardView.TODAY)

    def submit_session(self, data: Mapping[str, Any]) -> SubmitOutcome:
        outcome = self.session_form.submit(data)
        if outcome is SubmitOutcome.CREATED:
            self.go(DashboardView.TODAY)
        return outcome


# =========================
# Admin (pazienti)
# =========================
class AdminView(enum.Enum):
    PATIENTS = "patients"
    SESSION_TYPES = "session_types"
    NEW_PATIENT = "new_patient"


class AdminController(SectionController[AdminView]):
    TRANSITIONS = {
        AdminView.PATIENTS: frozenset({AdminView.SESSION_TYPES, AdminView.NEW_PATIENT}),
        AdminView.SESSION_TYPES: frozenset({AdminView.PATIENTS, AdminView.NEW_PATIENT}),
        AdminView.NEW_PATIENT: frozenset({AdminView.PATIENTS, AdminView.SESSION_TYPES}),
    }

    service_types = tuple(ServiceType)
    locations = tuple(SessionLocation)

    def __init__(self, patients: PatientRepository):
        self.patients = patients
        self.patient_form: FormController[Patient] = FormController(patients.create_patient)
        self._rows: list[Patient] = []
        self.load_failed = False
        super().__init__(AdminView.PATIENTS)

    def _enter(self, view: AdminView) -> None:
        if view is AdminView.PATIENTS:
            self.reload()
        elif view is AdminView.NEW_PATIENT:
            self.patient_form.reset()

    def reload(self) -> None:
        try:
            self._rows = self.patients.list_patients()
            self.load_failed = False
        except PersistenceError:
            self._rows = []
            self.load_failed = True

    def visible_patients(self, search: str | None = None) -> list[Patient]:
        """Filtra le righe gia' caricate, senza nuovo fetch."""
        return filter_patients(self._rows, search)

    def submit_patient(self, data: Mapping[str, Any]) -> SubmitOutcome:
        outcome = self.patient_form.submit(data)
        if outcome is SubmitOutcome.CREATED:
            self.go(AdminView.PATIENTS)
        return outcome

    def cancel(self) -> None:
        self.go(AdminView.PATIENTS)


# =========================
# Log sedute
# =========================
class LogSessionView(enum.Enum):
    OVERVIEW = "overview"
    FORM = "form"


class LogSessionController(_SessionFormMixin, SectionController[LogSessionView]):
    TRANSITIONS = {
        LogSessionView.OVERVIEW: frozenset({LogSessionView.FORM}),
        LogSessionView.FORM: frozenset({LogSessionView.OVERVIEW}),
    }

    RECENT_DAYS = 7

    def __init__(
        self,
        patients: PatientRepository,
        sessions: SessionRepository,
        today: Callable[[], date] = date.today,
    ):
        self.patients = patients
        self.sessions = sessions
        self._today = today
        self.recent_sessions: list[SessionWithPatient] = []
        self.load_failed = False
        self._init_session_form()
        super().__init__(LogSessionView.OVERVIEW)

    def _enter(self, view: LogSessionView) -> None:
        if view is LogSessionView.OVERVIEW:
            self.refresh()
        else:
            self.session_form.reset()

    def refresh(self) -> None:
        end = self._today()
        start = end - timedelta(days=self.RECENT_DAYS - 1)
        try:
            rows = self.sessions.list_sessions_between(start, end)
            self.load_failed = False
        except PersistenceError:
            rows = []
            self.load_failed = True
        # piu' recenti in alto
        self.recent_sessions = sorted(rows, key=lambda s: (s.session_date, s.start_time), reverse=True)

    @property
    def week_stats(self) -> DailyStats:
        return daily_stats(self.recent_sessions)

    def open_form(self) -> None:
        self.go(LogSessionView.FORM)

    def cancel(self) -> None:
        self.go(LogSessionView.OVERVIEW)

    def submit_session(self, data: Mapping[str, Any]) -> SubmitOutcome:
        outcome = self.session_form.submit(data)
        if outcome is SubmitOutcome.CREATED:
            self.go(LogSessionView.OVERVIEW)
        return outcome


# =========================
# Fatturazione
# =========================
class InvoicingView(enum.Enum):
    OVERVIEW = "overview"
    CREATE = "create"
    PENDING = "pending"


class InvoicingController(SectionController[InvoicingView]):
    """
    Fatturazione di sola visualizzazione: non esiste una tabella fatture,
    le bozze si ricostruiscono dalle sedute del periodo.
    """

    TRANSITIONS = {
        InvoicingView.OVERVIEW: frozenset({InvoicingView.CREATE, InvoicingView.PENDING}),
        InvoicingView.CREATE: frozenset({InvoicingView.OVERVIEW}),
        InvoicingView.PENDING: frozenset({InvoicingView.OVERVIEW, InvoicingView.CREATE}),
    }

    def __init__(
        self,
        patients: PatientRepository,
        sessions: SessionRepository,
        today: Callable[[], date] = date.today,
    ):
        self.patients = patients
        self.sessions = sessions
        self._today = today
        self.month_sessions: list[SessionWithPatient] = []
        self.draft: InvoiceDraft | None = None
        self.errors: dict[str, str] = {}
        self.load_failed = False
        super().__init__(InvoicingView.OVERVIEW)

    def _enter(self, view: InvoicingView) -> None:
        if view is InvoicingView.CREATE:
            self.draft = None
            self.errors = {}
        else:
            self._load_month()

    def _load_month(self) -> None:
        today = self._today()
        try:
            self.month_sessions = self.sessions.list_sessions_between(today.replace(day=1), today)
            self.load_failed = False
        except PersistenceError:
            self.month_sessions = []
            self.load_failed = True

    @property
    def month_stats(self) -> DailyStats:
        return daily_stats(self.month_sessions)

    @property
    def pending_sessions(self) -> list[SessionWithPatient]:
        """Sedute del mese senza codice di fatturazione."""
        return [s for s in self.month_sessions if not s.billing_code]

    def patient_options(self) -> list[Patient]:
        try:
            return self.patients.list_patients()
        except PersistenceError:
            self.load_failed = True
            return []

    def prepare_draft(self, patient: Patient | None, start: date | None, end: date | None) -> InvoiceDraft | None:
        errors: dict[str, str] = {}
        if patient is None:
            errors["patient"] = "Patient is required"
        if start is None:
            errors["start"] = "Start date is required"
        if end is None:
            errors["end"] = "End date is required"
        if start and end and end < start:
            errors["end"] = "End date must not be before start date"
        self.errors = errors
        if errors:
            self.draft = None
            return None

        try:
            rows = self.sessions.list_sessions_between(start, end, patient_id=patient.id)
        except PersistenceError:
            self.load_failed = True
            self.draft = None
            return None
        self.load_failed = False
        self.draft = build_invoice_draft(patient, rows, start, end)
        return self.draft

    def open_create(self) -> None:
        self.go(InvoicingView.CREATE)

    def open_pending(self) -> None:
        self.go(InvoicingView.PENDING)

    def back(self) -> None:
        self.go(InvoicingView.OVERVIEW)
