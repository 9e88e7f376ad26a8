from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import assert_never

import streamlit as st

from pathdash.config import configure_logging, get_settings
from pathdash.controllers import (
    AdminController,
    AdminView,
    DashboardController,
    DashboardView,
    FormController,
    InvoicingController,
    InvoicingView,
    LogSessionController,
    LogSessionView,
    SubmitOutcome,
)
from pathdash.gateway import get_gateway
from pathdash.models import PatientType, ServiceType, SessionLocation
from pathdash.repositories import PatientRepository, SessionRepository
from pathdash.reports import format_duration, format_location, format_time
from pathdash.seed import seed_demo

st.set_page_config(page_title="Speech Path Dash", layout="wide")
configure_logging()

settings = get_settings()


# Controller per sessione browser (lo stato vive in st.session_state)

def controllers() -> dict:
    if "controllers" not in st.session_state:
        gateway = get_gateway()
        patients = PatientRepository(gateway)
        sessions = SessionRepository(gateway)
        st.session_state["controllers"] = {
            "dashboard": DashboardController(patients, sessions),
            "admin": AdminController(patients),
            "log": LogSessionController(patients, sessions),
            "invoicing": InvoicingController(patients, sessions),
        }
    return st.session_state["controllers"]


def show_outcome(outcome: SubmitOutcome, ok_message: str) -> None:
    if outcome is SubmitOutcome.CREATED:
        st.toast(ok_message)
        st.rerun()
    elif outcome is SubmitOutcome.INVALID:
        st.error("Please fix the highlighted fields.")
    elif outcome is SubmitOutcome.FAILED:
        st.error("Could not save. Please try again.")
    elif outcome is SubmitOutcome.IGNORED:
        st.info("Still saving the previous submission...")
    else:
        assert_never(outcome)


def field_error(form: FormController, field: str) -> None:
    if field in form.errors:
        st.caption(f":red[{form.errors[field]}]")


def session_rows(items) -> list[dict]:
    return [
        {
            "Patient": s.patient.name,
            "Type": s.patient.patient_type.value,
            "Date": s.session_date.isoformat(),
            "Time": f"{format_time(s.start_time)} - {format_time(s.end_time)}",
            "Duration": format_duration(s.duration_minutes),
            "Service": s.service_type.value,
            "Location": format_location(s.location),
            "Billing": s.billing_code or "-",
        }
        for s in items
    ]


def session_form(ctrl: DashboardController | LogSessionController, key: str) -> None:
    form = ctrl.session_form
    search = st.text_input("Search for a patient...", key=f"{key}_search")
    options = ctrl.patient_options(search)
    if ctrl.options_failed:
        st.error("Could not load patients.")

    with st.form(f"{key}_form", clear_on_submit=False):
        patient = st.selectbox(
            "Patient *",
            options=options,
            format_func=lambda p: f"{p.name} ({p.patient_type.value} | {p.dob or '-'})",
            index=None,
            placeholder="No patients found" if not options else "Select a patient",
        )
        field_error(form, "patient_id")

        session_date = st.date_input("Session Date *", value=date.today())
        field_error(form, "session_date")

        c1, c2 = st.columns(2)
        start = c1.time_input("Start Time *", value=time(9, 0), step=timedelta(minutes=15))
        end = c2.time_input("End Time *", value=time(10, 0), step=timedelta(minutes=15))
        with c1:
            field_error(form, "start_time")
        with c2:
            field_error(form, "end_time")

        c3, c4 = st.columns(2)
        service = c3.selectbox(
            "Service Type *", options=list(ServiceType), index=list(ServiceType).index(ServiceType.THERAPY),
            format_func=lambda s: s.value.title(),
        )
        location = c4.selectbox(
            "Location *", options=list(SessionLocation), format_func=lambda l: format_location(l).title(),
        )
        billing = st.text_input("Billing Code", placeholder="Optional billing code")

        submitted = st.form_submit_button(
            "Saving..." if form.submitting else "Log Session", disabled=form.submitting
        )

    if submitted:
        outcome = ctrl.submit_session(
            {
                "patient_id": patient.id if patient else "",
                "session_date": session_date.isoformat() if session_date else "",
                "start_time": start.strftime("%H:%M") if start else "",
                "end_time": end.strftime("%H:%M") if end else "",
                "service_type": service,
                "location": location,
                "billing_code": billing,
            }
        )
        show_outcome(outcome, "Session logged.")



# Sidebar

with st.sidebar:
    st.header("Speech Path Dash")
    st.caption(datetime.now().strftime("%A, %B %d, %Y"))
    st.divider()

    if settings.uses_hosted_backend:
        st.caption(f"Backend: {settings.supabase_url}")
    else:
        st.caption(f"Local DB: {settings.database_url}")
        if st.button("Load demo data", key="seed_btn"):
            created = seed_demo(get_gateway())
            st.success(f"Demo patients created: {created}")
            st.session_state.pop("controllers", None)
            st.rerun()


# UI

ctrls = controllers()
tab1, tab2, tab3, tab4 = st.tabs(["Dashboard", "Patients", "Log Session", "Invoicing"])



# TAB 1 - Dashboard

with tab1:
    dash: DashboardController = ctrls["dashboard"]

    if dash.view is DashboardView.TODAY:
        head, action = st.columns([4, 1])
        head.subheader("Today's Sessions")
        if action.button("Log Session", key="dash_new"):
            dash.open_session_form()
            st.rerun()

        c1, c2, c3 = st.columns(3)
        c1.metric("Total Hours", dash.stats.total_hours)
        c2.metric("Patients Seen", dash.stats.patients_seen)
        c3.metric("Sessions", dash.stats.total_sessions)

        if dash.load_failed:
            st.error("Could not load today's sessions.")
        elif not dash.today_sessions:
            st.info("No sessions logged today.")
        else:
            st.dataframe(session_rows(dash.today_sessions), hide_index=True, use_container_width=True)

        if st.button("Refresh", key="dash_refresh"):
            dash.refresh()
            st.rerun()

    elif dash.view is DashboardView.LOG_SESSION:
        if st.button("← Back to Dashboard", key="dash_back"):
            dash.back()
            st.rerun()
        st.subheader("Log Session")
        session_form(dash, "dash")

    else:
        assert_never(dash.view)



# TAB 2 - Pazienti

with tab2:
    admin: AdminController = ctrls["admin"]

    nav1, nav2, nav3 = st.columns(3)
    if nav1.button("Patients", key="adm_patients"):
        admin.go(AdminView.PATIENTS)
        st.rerun()
    if nav2.button("Session Types & Costs", key="adm_types"):
        admin.go(AdminView.SESSION_TYPES)
        st.rerun()
    if nav3.button("Add Patient", key="adm_new"):
        admin.go(AdminView.NEW_PATIENT)
        st.rerun()

    if admin.view is AdminView.PATIENTS:
        search = st.text_input("Search patients by name, email, or phone...", key="adm_search")
        if admin.load_failed:
            st.error("Could not load patients.")
        patients = admin.visible_patients(search)
        if not patients:
            st.info("No patients found" if search else "No patients yet. Add your first patient to get started.")
        else:
            st.dataframe(
                [
                    {
                        "Patient": p.name,
                        "DOB": p.dob.strftime("%d/%m/%Y") if p.dob else "-",
                        "Phone": p.phone or "-",
                        "Email": p.email or "-",
                        "Type": p.patient_type.value,
                        "Status": p.status.value,
                        "Added": p.created_at.strftime("%d/%m/%Y") if p.created_at else "-",
                    }
                    for p in patients
                ],
                hide_index=True,
                use_container_width=True,
            )

    elif admin.view is AdminView.SESSION_TYPES:
        st.subheader("Session Types")
        st.write(", ".join(s.value.title() for s in admin.service_types))
        st.subheader("Locations")
        st.write(", ".join(format_location(l).title() for l in admin.locations))

    elif admin.view is AdminView.NEW_PATIENT:
        if st.button("← Back to Patients", key="adm_back"):
            admin.cancel()
            st.rerun()

        form = admin.patient_form
        st.subheader("Add New Patient")
        patient_type = st.selectbox(
            "Patient Type *", options=list(PatientType), format_func=lambda t: t.value.upper() if t is PatientType.NDIS else t.value.title(),
            key="adm_type",
        )
        with st.form("patient_form"):
            name = st.text_input("Full Name *", placeholder="Enter patient's full name")
            field_error(form, "name")
            dob = st.date_input("Date of Birth *", value=None, min_value=date(1900, 1, 1), max_value=date.today())
            field_error(form, "dob")
            c1, c2 = st.columns(2)
            phone = c1.text_input("Phone Number", placeholder="0412 345 678")
            email = c2.text_input("Email", placeholder="patient@email.com")
            with c2:
                field_error(form, "email")

            ndis_number = ""
            if patient_type is PatientType.NDIS:
                ndis_number = st.text_input("NDIS Participant Number", placeholder="NDIS123456789")
                field_error(form, "ndis_participant_number")

            submitted = st.form_submit_button(
                "Saving..." if form.submitting else "Add Patient", disabled=form.submitting
            )

        if submitted:
            outcome = admin.submit_patient(
                {
                    "name": name,
                    "dob": dob.isoformat() if dob else "",
                    "phone": phone,
                    "email": email,
                    "patient_type": patient_type,
                    "ndis_participant_number": ndis_number,
                }
            )
            show_outcome(outcome, "Patient added.")

    else:
        assert_never(admin.view)



# TAB 3 - Log sedute

with tab3:
    log: LogSessionController = ctrls["log"]

    if log.view is LogSessionView.OVERVIEW:
        head, action = st.columns([4, 1])
        head.subheader("Session Log")
        if action.button("Log New Session", key="log_new"):
            log.open_form()
            st.rerun()

        stats = log.week_stats
        c1, c2, c3 = st.columns(3)
        c1.metric("Hours (7 days)", stats.total_hours)
        c2.metric("Patients (7 days)", stats.patients_seen)
        c3.metric("Sessions (7 days)", stats.total_sessions)

        if log.load_failed:
            st.error("Could not load recent sessions.")
        elif not log.recent_sessions:
            st.info("No sessions in the last 7 days.")
        else:
            st.dataframe(session_rows(log.recent_sessions), hide_index=True, use_container_width=True)

    elif log.view is LogSessionView.FORM:
        if st.button("← Back to Session Log", key="log_back"):
            log.cancel()
            st.rerun()
        session_form(log, "log")

    else:
        assert_never(log.view)



# TAB 4 - Fatturazione

with tab4:
    inv: InvoicingController = ctrls["invoicing"]

    if inv.view is InvoicingView.OVERVIEW:
        st.subheader("Invoicing")
        stats = inv.month_stats
        c1, c2, c3 = st.columns(3)
        c1.metric("Sessions this month", stats.total_sessions)
        c2.metric("Hours this month", stats.total_hours)
        c3.metric("Missing billing code", len(inv.pending_sessions))
        if inv.load_failed:
            st.error("Could not load this month's sessions.")

        b1, b2 = st.columns(2)
        if b1.button("Create Invoice", key="inv_create"):
            inv.open_create()
            st.rerun()
        if b2.button("Pending", key="inv_pending"):
            inv.open_pending()
            st.rerun()

    elif inv.view is InvoicingView.CREATE:
        if st.button("← Back to Invoicing", key="inv_back"):
            inv.back()
            st.rerun()

        patient = st.selectbox(
            "Select Patient", options=inv.patient_options(), format_func=lambda p: p.name, index=None,
            placeholder="Select a patient...",
        )
        c1, c2 = st.columns(2)
        start = c1.date_input("Start Date", value=date.today().replace(day=1), key="inv_start")
        end = c2.date_input("End Date", value=date.today(), key="inv_end")

        if st.button("Preview Invoice", key="inv_preview"):
            inv.prepare_draft(patient, start, end)

        for msg in inv.errors.values():
            st.error(msg)
        if inv.load_failed:
            st.error("Could not load sessions for this period.")

        draft = inv.draft
        if draft is not None:
            st.write(
                f"**{draft.patient.name}** | {draft.period_start:%d/%m/%Y} - {draft.period_end:%d/%m/%Y} | "
                f"Total: {format_duration(draft.total_minutes)}"
            )
            if not draft.lines:
                st.info("No sessions in this period.")
            else:
                st.dataframe(
                    [
                        {
                            "Date": line.session_date.isoformat(),
                            "Service": line.service_type.value,
                            "Location": format_location(line.location),
                            "Duration": format_duration(line.minutes),
                            "Billing": line.billing_code or "-",
                        }
                        for line in draft.lines
                    ],
                    hide_index=True,
                    use_container_width=True,
                )
            if draft.missing_billing_codes:
                st.warning(f"{draft.missing_billing_codes} session(s) have no billing code.")

    elif inv.view is InvoicingView.PENDING:
        if st.button("← Back to Invoicing", key="inv_back_pending"):
            inv.back()
            st.rerun()
        st.subheader("Sessions missing a billing code")
        if not inv.pending_sessions:
            st.info("Every session this month has a billing code.")
        else:
            st.dataframe(session_rows(inv.pending_sessions), hide_index=True, use_container_width=True)

    else:
        assert_never(inv.view)
