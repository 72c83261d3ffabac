from __future__ import annotations

import hmac
import io
import logging
import os
import secrets
from collections import OrderedDict
from functools import wraps
from typing import Any, Callable

from flask import (
    Flask,
    flash,
    redirect,
    render_template_string,
    request,
    send_file,
    session,
    url_for,
)

from document import (
    DocumentRenderError,
    QuotationImportError,
    document_filename,
    read_document,
    render_document,
    render_preview_html,
)
from presets import CompanyProfile, RenderSettings, load_presets
from quotation import (
    CUSTOM_UNIT,
    TEXT_FIELDS,
    ItemEntryError,
    PendingDownload,
    Quotation,
    QuoteSession,
    format_amount,
    format_quantity,
    parse_decimal,
)
from spreadsheet import spreadsheet_filename, write_workbook
from template import INDEX_TEMPLATE, LOGIN_TEMPLATE, PREVIEW_CSS

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY") or secrets.token_hex(32)


# ---------------------------------------------------------------------------
# Configuration & preset loading
# ---------------------------------------------------------------------------

PRESETS = load_presets()
DEFAULTS = PRESETS.get("defaults", {})
AUTH = PRESETS.get("auth", {})
COMPANY = CompanyProfile.from_presets(PRESETS)
RENDER = RenderSettings.from_presets(PRESETS)

UNITS: tuple[str, ...] = tuple(DEFAULTS.get("units", ()))
AMOUNT_GROUPING = str(DEFAULTS.get("amount_grouping", "indian"))
NOTIFICATION_TIMEOUT_MS = int(DEFAULTS.get("notification_timeout_ms", 5000))
MAX_SESSIONS = int(DEFAULTS.get("max_sessions", 200))
APP_TITLE = str(PRESETS.get("company", {}).get("app_title", COMPANY.name))

AUTH_COOKIE = str(AUTH.get("cookie_name", "auth"))
AUTH_COOKIE_MAX_AGE = int(AUTH.get("cookie_max_age_days", 1)) * 24 * 60 * 60

INCOMPLETE_MESSAGE = "Please fill in all required fields"


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

# One live quotation per browser session, process memory only.
# Least recently used first; trimmed to MAX_SESSIONS.
SESSIONS: OrderedDict[str, QuoteSession] = OrderedDict()


def _current() -> QuoteSession:
    sid = session.get("sid")
    state = SESSIONS.get(sid) if sid else None
    if state is not None:
        SESSIONS.move_to_end(sid)
        return state

    sid = secrets.token_urlsafe(16)
    session["sid"] = sid
    state = SESSIONS[sid] = QuoteSession()
    while len(SESSIONS) > MAX_SESSIONS:
        evicted, _ = SESSIONS.popitem(last=False)
        logger.info("Dropped idle quotation session %s", evicted[:6])
    return state


def _forget_current() -> None:
    sid = session.pop("sid", None)
    if sid:
        SESSIONS.pop(sid, None)


def _render_document(quotation: Quotation) -> bytes:
    return render_document(quotation, COMPANY, RENDER, AMOUNT_GROUPING)


def _fmt(value: Any) -> str:
    return format_amount(value, AMOUNT_GROUPING)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def is_authenticated() -> bool:
    return request.cookies.get(AUTH_COOKIE) == "true"


def login_required(view: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(view)
    def wrapped(*args: Any, **kwargs: Any) -> Any:
        if not is_authenticated():
            return redirect(url_for("login"))
        return view(*args, **kwargs)

    return wrapped


def check_credentials(username: str, password: str) -> bool:
    expected_user = str(AUTH.get("username", ""))
    expected_password = str(AUTH.get("password", ""))
    if not expected_user or not expected_password:
        return False
    user_ok = hmac.compare_digest(username.encode("utf-8"), expected_user.encode("utf-8"))
    password_ok = hmac.compare_digest(password.encode("utf-8"), expected_password.encode("utf-8"))
    return user_ok and password_ok


# ---------------------------------------------------------------------------
# Form parsing
# ---------------------------------------------------------------------------


def parse_bool(v: str) -> bool:
    if isinstance(v, str):
        return v.lower() in ("1", "true", "on", "yes")
    return bool(v)


def parse_checkbox(form: Any, key: str, default: bool) -> bool:
    if key in form:
        raw = form.get(key)
        return parse_bool(raw if raw not in (None, "") else "on")
    if not form.get(f"{key}_present"):
        return default
    return False


def _apply_form(state: QuoteSession) -> None:
    """Push edited fields from the posted form into the session."""
    form = request.form
    q = state.quotation
    for name in TEXT_FIELDS:
        if name not in form:
            continue
        value = form.get(name, "")
        if value != getattr(q, name):
            state.update_field(name, value)
    show_title = parse_checkbox(form, "show_title_heading", q.show_title_heading)
    if show_title != q.show_title_heading:
        state.update_field("show_title_heading", show_title)

    if "item_description" in form:
        state.update_draft(
            description=form.get("item_description", ""),
            quantity=parse_decimal(form.get("item_quantity")),
            unit=form.get("item_unit", ""),
            unit_rate=parse_decimal(form.get("item_rate")),
            custom_unit=form.get("item_custom_unit", ""),
        )


def _run_action(state: QuoteSession, action: str) -> None:
    if action == "add_item":
        item = state.add_item()
        logger.debug("Added item %r", item.description)
    elif action.startswith("remove_item:"):
        try:
            index = int(action.split(":", 1)[1])
        except ValueError:
            raise ItemEntryError(f"Invalid item position: {action}")
        try:
            state.remove_item(index)
        except IndexError as exc:
            raise ItemEntryError(str(exc)) from exc


# ---------------------------------------------------------------------------
# Flask routes
# ---------------------------------------------------------------------------


@app.route("/login", methods=["GET", "POST"])
def login():
    error, username = None, ""
    if request.method == "POST":
        username = request.form.get("username", "")
        password = request.form.get("password", "")
        if check_credentials(username, password):
            logger.info("User %s signed in", username)
            resp = redirect(url_for("index"))
            resp.set_cookie(AUTH_COOKIE, "true", max_age=AUTH_COOKIE_MAX_AGE, samesite="Lax")
            return resp
        logger.info("Rejected sign-in for %r", username)
        error = "Invalid username or password"
    elif is_authenticated():
        return redirect(url_for("index"))
    return render_template_string(
        LOGIN_TEMPLATE,
        company_name=COMPANY.name,
        error=error,
        username=username,
    )


@app.route("/logout")
def logout():
    _forget_current()
    resp = redirect(url_for("login"))
    resp.delete_cookie(AUTH_COOKIE)
    return resp


@app.route("/", methods=["GET", "POST"])
@login_required
def index():
    state = _current()
    if request.method == "POST":
        _apply_form(state)
        try:
            _run_action(state, request.form.get("action", "save"))
        except ItemEntryError as exc:
            flash(str(exc), "error")
        return redirect(url_for("index"))

    pending = state.pending_download
    return render_template_string(
        INDEX_TEMPLATE,
        app_title=APP_TITLE,
        q=state.quotation,
        draft=state.draft,
        errors=state.errors,
        units=UNITS,
        custom_unit=CUSTOM_UNIT,
        fmt=_fmt,
        qty=format_quantity,
        preview=render_preview_html(state.quotation, COMPANY, AMOUNT_GROUPING),
        notification_timeout_ms=NOTIFICATION_TIMEOUT_MS,
        pending_download=pending,
    )


@app.route("/preview")
@login_required
def preview():
    state = _current()
    html = render_preview_html(state.quotation, COMPANY, AMOUNT_GROUPING)
    return f"<!doctype html><html><head><meta charset='utf-8'><style>{PREVIEW_CSS}</style></head><body>{html}</body></html>"


@app.route("/export/xlsx", methods=["POST"])
@login_required
def export_xlsx():
    state = _current()
    _apply_form(state)
    if not state.validate():
        flash(INCOMPLETE_MESSAGE, "error")
        return redirect(url_for("index"))
    data = write_workbook(state.quotation, COMPANY, AMOUNT_GROUPING)
    return send_file(
        io.BytesIO(data),
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name=spreadsheet_filename(state.quotation),
    )


@app.route("/export/pdf", methods=["POST"])
@login_required
def export_pdf():
    state = _current()
    _apply_form(state)
    if not state.validate():
        flash(INCOMPLETE_MESSAGE, "error")
        return redirect(url_for("index"))
    try:
        data = _render_document(state.quotation)
    except DocumentRenderError as exc:
        logger.exception("PDF export failed")
        flash(str(exc), "error")
        return redirect(url_for("index"))
    return send_file(
        io.BytesIO(data),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=document_filename(state.quotation),
    )


@app.route("/import", methods=["POST"])
@login_required
def import_pdf():
    state = _current()
    upload = request.files.get("document")
    if upload is None or not upload.filename:
        flash("Choose a PDF file to upload", "error")
        return redirect(url_for("index"))
    if not upload.filename.lower().endswith(".pdf"):
        flash("Only PDF files can be uploaded", "error")
        return redirect(url_for("index"))
    try:
        quotation = read_document(upload.read())
    except QuotationImportError as exc:
        flash(str(exc), "error")
        return redirect(url_for("index"))
    state.load(quotation)
    flash("PDF loaded successfully", "success")
    return redirect(url_for("index"))


@app.route("/submit", methods=["POST"])
@login_required
def submit():
    state = _current()
    _apply_form(state)
    if not state.validate():
        flash(INCOMPLETE_MESSAGE, "error")
        return redirect(url_for("index"))
    filename = document_filename(state.quotation)
    try:
        data = state.submit(_render_document)
    except (ItemEntryError, DocumentRenderError) as exc:
        flash(str(exc), "error")
        return redirect(url_for("index"))
    state.pending_download = PendingDownload(filename=filename, data=data)
    flash(f"PDF exported successfully. Next quote number: {state.quotation.quote_number}", "success")
    return redirect(url_for("index"))


@app.route("/download")
@login_required
def download():
    state = _current()
    pending = state.pending_download
    if pending is None:
        return redirect(url_for("index"))
    state.pending_download = None
    return send_file(
        io.BytesIO(pending.data),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=pending.filename,
    )


@app.errorhandler(404)
def not_found(_exc):
    return redirect(url_for("index" if is_authenticated() else "login"))


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "5000"))
    debug = os.environ.get("DEBUG", "0") in ["1", "true", "True"]
    app.run(host=host, port=port, debug=debug)
