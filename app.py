"""Heritage Fleet Desk: the web front end of a heritage bus-rental business.

This Flask application is the presentation layer for the operator's
booking API.  Agreements, buses, accounts and users all live behind that
API; the app only renders pages, validates forms and forwards requests
through the typed client in ``api_client``.  The one thing stored locally
is a small table of per-user interface preferences (the language).  The
booking API address is deployment configuration (FLEETDESK_API_URL).

To run the app locally:

    # Install dependencies
    pip install -e .

    # Initialise the local preference database
    python app.py --init-db

    # Start the development server (the booking API must be reachable at
    # FLEETDESK_API_URL, http://localhost:5115 by default)
    python app.py

The app will be available at http://localhost:5000/.
"""

import argparse
import os
from datetime import date, datetime, timedelta
from decimal import Decimal
from functools import wraps

from flask import (Flask, abort, flash, g, redirect, render_template, request,
                   session, url_for)
from flask_sqlalchemy import SQLAlchemy
from loguru import logger

from api_client import (AccountsApi, AgreementsApi, ApiClient, ApiError,
                        AuthApi, BusAssignmentConflictError, BusesApi,
                        PublicApi, ScheduleApi, SettingsApi)
from dates import format_display, format_iso, parse_date
from i18n import SUPPORTED_LANGUAGES, normalise_language, translate
from ledger import (LEDGER_FILTERS, TOUR_FILTERS, cancelled_tours,
                    dashboard_stats, filter_ledger, filter_tours,
                    ledger_totals, merge_balances, search_ledger,
                    sort_by_created, tour_counts, upcoming_bookings,
                    upcoming_departures)
from logging_config import setup_logging
from pricing import (compute_balance, parse_amount, parse_positive_int,
                     public_quote, quote_total)
from schedule import (WEEKDAY_LABELS, MonthView, build_bus_timeline,
                      build_month, render_day_cell, timeline_dates, weeks)


app = Flask(__name__)
app.config['SECRET_KEY'] = os.environ.get('FLEETDESK_SECRET_KEY', 'change-me')
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('FLEETDESK_DATABASE_URI', 'sqlite:///fleetdesk.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['API_BASE_URL'] = os.environ.get('FLEETDESK_API_URL', 'http://localhost:5115').rstrip('/')
app.config['API_TIMEOUT'] = float(os.environ.get('FLEETDESK_API_TIMEOUT', '30'))
# Optional httpx transport, used by the test-suite to stand in for the API
app.config['API_TRANSPORT'] = None
app.config['CALENDAR_CAP'] = 3
app.config['TIMELINE_DAYS'] = 14
app.config['LOG_LEVEL'] = os.environ.get('FLEETDESK_LOG_LEVEL', 'INFO')

setup_logging(app.config['LOG_LEVEL'])

db = SQLAlchemy(app)


class Preference(db.Model):
    """An interface preference of one signed-in user (currently the language)."""

    __table_args__ = (db.UniqueConstraint('username', 'key'),)

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(128), nullable=False)
    key = db.Column(db.String(64), nullable=False)
    value = db.Column(db.String(255))
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Preference {self.username}:{self.key}={self.value}>"


def get_preference(username: str, key: str, default=None):
    pref = Preference.query.filter_by(username=username, key=key).first()
    return pref.value if pref and pref.value else default


def set_preference(username: str, key: str, value) -> None:
    pref = Preference.query.filter_by(username=username, key=key).first()
    if pref is None:
        pref = Preference(username=username, key=key)
        db.session.add(pref)
    pref.value = value
    db.session.commit()


def init_db():
    """Initialise the database tables."""
    db.create_all()
    logger.info("Database initialised at {}", app.config['SQLALCHEMY_DATABASE_URI'])


# ---------------------------------------------------------------------------
# API access.  One client per request, bound to the signed-in user's token
# and closed when the request ends.

def api_client() -> ApiClient:
    if 'api_client' not in g:
        g.api_client = ApiClient(
            app.config['API_BASE_URL'],
            token=session.get('token'),
            timeout=app.config['API_TIMEOUT'],
            transport=app.config['API_TRANSPORT'],
        )
    return g.api_client


@app.teardown_request
def close_api_client(exc):
    client = g.pop('api_client', None)
    if client is not None:
        client.close()


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not session.get('token'):
            flash('Please sign in to continue.')
            return redirect(url_for('login', next=request.path))
        return view(*args, **kwargs)
    return wrapper


@app.errorhandler(ApiError)
def handle_api_error(error: ApiError):
    """
    Errors not handled by a view.  An expired or invalid token drops the
    session and sends the user back to the login page; anything else is
    shown on the error page.
    """
    if error.is_unauthorized:
        session.pop('token', None)
        flash('Your session has expired. Please sign in again.')
        return redirect(url_for('login', next=request.path))
    status = error.status if 400 <= error.status < 600 else 502
    return render_template('error.html', error=error), status


@app.context_processor
def inject_globals():
    language = normalise_language(session.get('language'))
    return {
        't': lambda key: translate(key, language),
        'language': language,
        'languages': SUPPORTED_LANGUAGES,
        'signed_in': bool(session.get('token')),
        'username': session.get('username'),
        'today': date.today(),
    }


@app.template_filter('ddmmyyyy')
def ddmmyyyy_filter(value):
    return format_display(value)


@app.template_filter('money')
def money_filter(value):
    if value is None or value == '':
        return '-'
    amount = Decimal(str(value))
    return f"₹{amount:,.2f}"


def _safe_next(target: str) -> str:
    # Only follow local paths after login
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return url_for('dashboard')


# ---------------------------------------------------------------------------
# Public pages

@app.route('/')
def index():
    return render_template('index.html')


@app.route('/search')
def search():
    """Public bus search for customers; results come from /api/public/search."""
    from_date = parse_date(request.args.get('from_date'))
    to_date = parse_date(request.args.get('to_date')) or from_date
    filters = {
        'from_date': format_iso(from_date),
        'to_date': format_iso(to_date),
        'city': request.args.get('city', '').strip(),
        'to': request.args.get('to', '').strip(),
        'type': request.args.get('type', 'AC'),
    }
    buses = []
    if from_date:
        if to_date < from_date:
            flash('The return date must be on or after the departure date.')
        else:
            bus_type = 'AC' if filters['type'].upper() == 'AC' else 'NON-AC'
            try:
                buses = PublicApi(api_client()).search(from_date, to_date, city=filters['city'],
                                                       bus_type=bus_type)
            except ApiError as exc:
                flash(f"Search failed: {exc.message}")
    elif request.args.get('from_date'):
        flash('Enter a valid travel date.')
    return render_template('search.html', buses=buses, filters=filters, searched=bool(from_date))


@app.route('/search/book/<bus_id>', methods=['GET', 'POST'])
def book_bus(bus_id: str):
    """
    Online booking of one bus.  The quote is the bus rate per day times the
    trip length plus the extra charges entered by the customer; the API
    records the booking as paid and assigns the bus.
    """
    public = PublicApi(api_client())
    bus = public.bus(bus_id)
    values = request.form if request.method == 'POST' else {
        'from_date': request.args.get('fromDate', ''),
        'to_date': request.args.get('toDate', ''),
        'places_to_cover': request.args.get('to', ''),
        'per_day_rent': str(bus.base_rate),
        'bus_type': request.args.get('type', bus.bus_type),
    }
    from_date = parse_date(values.get('from_date'))
    to_date = parse_date(values.get('to_date')) or from_date
    extras = [values.get(name) for name in ('driver_charges', 'toll', 'fast_tag', 'other_charges')]
    total = public_quote(from_date, to_date, values.get('per_day_rent'), extras)

    if request.method == 'POST' and request.form.get('action') != 'quote':
        errors = []
        if not values.get('customer_name', '').strip():
            errors.append('Please enter your name.')
        if not values.get('phone', '').strip():
            errors.append('Please enter a phone number.')
        if from_date is None or to_date is None or to_date < from_date:
            errors.append('Please choose valid travel dates.')
        if errors:
            for message in errors:
                flash(message)
            return render_template('book.html', bus=bus, values=values, total=total)
        extra_total = sum((parse_amount(e) or Decimal('0') for e in extras), Decimal('0'))
        payload = {
            'customerName': values['customer_name'].strip(),
            'phone': values['phone'].strip(),
            'fromDate': format_iso(from_date),
            'toDate': format_iso(to_date),
            'busType': values.get('bus_type') or bus.bus_type,
            'passengers': parse_positive_int(values.get('passengers')) or 0,
            'placesToCover': values.get('places_to_cover', '').strip(),
            'busId': bus.id,
            'perDayRent': str(parse_amount(values.get('per_day_rent')) or Decimal('0')),
            'mountainRent': str(extra_total),
            'totalAmount': str(total),
            'paymentId': values.get('payment_id') or None,
        }
        try:
            result = public.book(payload) or {}
        except ApiError as exc:
            flash(f"Booking failed: {exc.message}")
            return render_template('book.html', bus=bus, values=values, total=total)
        agreement_id = result.get('agreementId') or result.get('AgreementId')
        logger.info("Online booking {} created for bus {}", agreement_id, bus.id)
        agreement = public.agreement(agreement_id) if agreement_id else None
        return render_template('book_confirmed.html', bus=bus, agreement=agreement,
                               agreement_id=agreement_id, total=total)
    return render_template('book.html', bus=bus, values=values, total=total)


# ---------------------------------------------------------------------------
# Authentication and profile

def _start_session(auth) -> None:
    session['token'] = auth.token
    session['username'] = auth.username
    session['company'] = {
        'name': auth.company_name or '',
        'address': auth.company_address or '',
        'phone': auth.company_phone or '',
        'email': auth.email or '',
    }
    if auth.username:
        saved = get_preference(auth.username, 'language')
        if saved in SUPPORTED_LANGUAGES:
            session['language'] = saved


@app.route('/auth/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        username = request.form.get('username', '').strip()
        password = request.form.get('password', '')
        if not username or not password:
            flash('Enter your username and password.')
            return render_template('login.html')
        try:
            auth = AuthApi(api_client()).login(username, password)
        except ApiError as exc:
            logger.info("Login failed for {}: {}", username, exc.status)
            flash(exc.message if exc.status != 401 else 'Invalid username or password.')
            return render_template('login.html')
        _start_session(auth)
        return redirect(_safe_next(request.args.get('next', '')))
    return render_template('login.html')


@app.route('/auth/register', methods=['GET', 'POST'])
def register():
    if request.method == 'POST':
        form = request.form
        required = ('username', 'password', 'company_name')
        if any(not form.get(name, '').strip() for name in required):
            flash('Username, password and company name are required.')
            return render_template('register.html', values=form)
        if form.get('password') != form.get('confirm_password'):
            flash('Passwords do not match.')
            return render_template('register.html', values=form)
        try:
            auth = AuthApi(api_client()).register(
                form['username'].strip(), form['password'], form['company_name'].strip(),
                company_address=form.get('company_address', '').strip(),
                company_phone=form.get('company_phone', '').strip(),
                email=form.get('email', '').strip() or None,
            )
        except ApiError as exc:
            flash(exc.message)
            return render_template('register.html', values=form)
        _start_session(auth)
        flash('Account created.')
        return redirect(url_for('dashboard'))
    return render_template('register.html', values={})


@app.route('/auth/logout', methods=['POST'])
def logout():
    language = session.get('language')
    session.clear()
    if language:
        session['language'] = language
    return redirect(url_for('index'))


@app.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    if request.method == 'POST':
        form = request.form
        try:
            auth = AuthApi(api_client()).update_profile(
                form.get('company_name', '').strip(),
                form.get('company_address', '').strip(),
                form.get('company_phone', '').strip(),
                email=form.get('email', '').strip() or None,
            )
        except ApiError as exc:
            if exc.is_unauthorized:
                raise
            flash(exc.message)
        else:
            # The profile endpoint may hand out a refreshed token
            if auth.token:
                session['token'] = auth.token
            session['company'] = {
                'name': auth.company_name or '',
                'address': auth.company_address or '',
                'phone': auth.company_phone or '',
                'email': auth.email or '',
            }
            flash('Profile updated.')
            return redirect(url_for('profile'))
    return render_template('profile.html', company=session.get('company', {}))


# ---------------------------------------------------------------------------
# Dashboard

@app.route('/dashboard')
@login_required
def dashboard():
    client = api_client()
    buses = BusesApi(client).list()
    agreements = AgreementsApi(client).list()
    summary = AccountsApi(client).summary()
    return render_template('dashboard.html',
                           stats=dashboard_stats(buses, agreements, summary),
                           departures=upcoming_departures(agreements))


# ---------------------------------------------------------------------------
# Bookings (agreements)


def _bus_rates_from_form(form, bus_count: int):
    """
    Individual rates, one per bus.  Missing rows are filled from the flat
    rate so changing the bus count never loses what was typed.
    """
    rates = []
    for i in range(bus_count):
        prefix = f"rate-{i}-"
        if f"{prefix}per_day_rent" in form:
            rates.append({
                'per_day_rent': form.get(f"{prefix}per_day_rent", '').strip(),
                'include_mountain_rent': form.get(f"{prefix}include_mountain_rent") == 'on',
                'mountain_rent': form.get(f"{prefix}mountain_rent", '').strip(),
            })
        else:
            rates.append({
                'per_day_rent': form.get('per_day_rent', '').strip(),
                'include_mountain_rent': form.get('include_mountain_rent') == 'on',
                'mountain_rent': form.get('mountain_rent', '').strip(),
            })
    return rates


def agreement_payload_from_form(form):
    """
    Validate the agreement form and build the API request body.

    Returns ``(payload, errors)``; the payload is None when there are
    errors.  Amounts are sent as text, dates in European format, which is
    how the API stores them.  A blank total is filled in from the quote.
    """
    errors = []
    customer_name = form.get('customer_name', '').strip()
    if not customer_name:
        errors.append('Customer name is required.')
    from_date = parse_date(form.get('from_date'))
    to_date = parse_date(form.get('to_date'))
    if from_date is None or to_date is None:
        errors.append('Enter the trip dates as DD/MM/YYYY.')
    elif to_date < from_date:
        errors.append('The return date must be on or after the departure date.')
    bus_count = parse_positive_int(form.get('bus_count'))
    if bus_count is None:
        errors.append('Bus count must be a positive number.')

    include_mountain = form.get('include_mountain_rent') == 'on'
    use_individual = form.get('use_individual_bus_rates') == 'on'
    rates = _bus_rates_from_form(form, bus_count or 1) if use_individual else None
    if use_individual:
        for number, rate in enumerate(rates, start=1):
            if parse_amount(rate['per_day_rent']) is None:
                errors.append(f"Enter the per day rent for bus {number}.")
            if rate['include_mountain_rent'] and parse_amount(rate['mountain_rent']) is None:
                errors.append(f"Enter the mountain rent for bus {number}.")
    else:
        if parse_amount(form.get('per_day_rent')) is None:
            errors.append('Enter the per day rent.')
        if include_mountain and parse_amount(form.get('mountain_rent')) is None:
            errors.append('Enter the mountain rent.')

    total = parse_amount(form.get('total_amount'))
    if total is None and not errors:
        total = quote_total(from_date, to_date, bus_count, form.get('per_day_rent'),
                            include_mountain, form.get('mountain_rent'), rates)
        if total is None:
            errors.append('The total amount could not be calculated.')
    advance = parse_amount(form.get('advance_paid')) or Decimal('0')
    if total is not None and advance > total:
        errors.append('The advance cannot exceed the total amount.')
    if errors:
        return None, errors

    payload = {
        'customerName': customer_name,
        'phone': form.get('phone', '').strip(),
        'fromDate': format_display(from_date),
        'toDate': format_display(to_date),
        'busType': form.get('bus_type', '').strip(),
        'busCount': str(bus_count),
        'passengers': form.get('passengers', '').strip(),
        'placesToCover': form.get('places_to_cover', '').strip(),
        'perDayRent': form.get('per_day_rent', '').strip(),
        'includeMountainRent': include_mountain,
        'mountainRent': form.get('mountain_rent', '').strip() if include_mountain else '',
        'useIndividualBusRates': use_individual,
        'busRates': [{
            'perDayRent': r['per_day_rent'],
            'includeMountainRent': r['include_mountain_rent'],
            'mountainRent': r['mountain_rent'] if r['include_mountain_rent'] else '',
        } for r in rates or []],
        'totalAmount': str(total),
        'advancePaid': str(advance),
        'notes': form.get('notes', '').strip(),
    }
    return payload, []


def agreement_form_values(agreement) -> dict:
    """Prefill the agreement form from an existing agreement."""
    def text(value):
        return '' if value is None else str(value)

    values = {
        'customer_name': agreement.customer_name,
        'phone': agreement.phone,
        'from_date': format_display(agreement.from_date),
        'to_date': format_display(agreement.to_date),
        'bus_type': agreement.bus_type,
        'bus_count': text(agreement.bus_count),
        'passengers': text(agreement.passengers),
        'places_to_cover': agreement.places_to_cover,
        'per_day_rent': text(agreement.per_day_rent),
        'include_mountain_rent': 'on' if agreement.include_mountain_rent else '',
        'mountain_rent': text(agreement.mountain_rent),
        'use_individual_bus_rates': 'on' if agreement.use_individual_bus_rates else '',
        'total_amount': text(agreement.total_amount),
        'advance_paid': text(agreement.advance_paid),
        'notes': agreement.notes,
    }
    for i, rate in enumerate(agreement.bus_rates or []):
        values[f"rate-{i}-per_day_rent"] = text(rate.per_day_rent)
        values[f"rate-{i}-include_mountain_rent"] = 'on' if rate.include_mountain_rent else ''
        values[f"rate-{i}-mountain_rent"] = text(rate.mountain_rent)
    return values


def _form_quote(form):
    bus_count = parse_positive_int(form.get('bus_count'))
    rates = None
    if form.get('use_individual_bus_rates') == 'on':
        rates = _bus_rates_from_form(form, bus_count or 1)
    total = quote_total(parse_date(form.get('from_date')), parse_date(form.get('to_date')),
                        bus_count, form.get('per_day_rent'),
                        form.get('include_mountain_rent') == 'on', form.get('mountain_rent'), rates)
    return total, compute_balance(total, form.get('advance_paid'))


def _render_agreement_form(values, agreement=None):
    total, balance = _form_quote(values)
    rate_rows = parse_positive_int(values.get('bus_count')) or 1
    return render_template('agreement_form.html', values=values, agreement=agreement,
                           quote=total, balance=balance, rate_rows=rate_rows)


@app.route('/bookings')
@login_required
def list_bookings():
    """Bookings still to run or running, earliest departure first."""
    agreements = AgreementsApi(api_client()).list()
    return render_template('bookings.html', bookings=upcoming_bookings(agreements, date.today()))


@app.route('/bookings/new', methods=['GET', 'POST'])
@login_required
def new_booking():
    if request.method == 'POST':
        if request.form.get('action') == 'quote':
            return _render_agreement_form(request.form)
        payload, errors = agreement_payload_from_form(request.form)
        if errors:
            for message in errors:
                flash(message)
            return _render_agreement_form(request.form)
        try:
            agreement = AgreementsApi(api_client()).create(payload)
        except ApiError as exc:
            if exc.is_unauthorized:
                raise
            flash(exc.message)
            return _render_agreement_form(request.form)
        flash('Booking created.')
        return redirect(url_for('booking_details', agreement_id=agreement.id))
    return _render_agreement_form({'bus_count': '1', 'bus_type': 'AC'})


@app.route('/bookings/<agreement_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_booking(agreement_id: str):
    agreements = AgreementsApi(api_client())
    agreement = agreements.get(agreement_id)
    if request.method == 'POST':
        if request.form.get('action') == 'quote':
            return _render_agreement_form(request.form, agreement)
        payload, errors = agreement_payload_from_form(request.form)
        if errors:
            for message in errors:
                flash(message)
            return _render_agreement_form(request.form, agreement)
        try:
            agreements.update(agreement_id, payload)
        except ApiError as exc:
            if exc.is_unauthorized:
                raise
            flash(exc.message)
            return _render_agreement_form(request.form, agreement)
        flash('Booking updated.')
        return redirect(url_for('booking_details', agreement_id=agreement_id))
    return _render_agreement_form(agreement_form_values(agreement), agreement)


@app.route('/bookings/<agreement_id>')
@login_required
def booking_details(agreement_id: str):
    client = api_client()
    agreement = AgreementsApi(client).get(agreement_id)
    assigned_ids = {b.id for b in agreement.assigned_buses or []}
    buses = [b for b in BusesApi(client).list() if b.id not in assigned_ids]
    return render_template('agreement_detail.html', agreement=agreement, buses=buses)


@app.route('/bookings/<agreement_id>/preview')
@login_required
def booking_preview(agreement_id: str):
    """Printable agreement with the operator's letterhead."""
    agreement = AgreementsApi(api_client()).get(agreement_id)
    base_rent = agreement.total_amount or Decimal('0')
    mountain_rent = agreement.mountain_rent or Decimal('0')
    return render_template('agreement_preview.html', agreement=agreement,
                           company=session.get('company') or {},
                           base_rent=base_rent, mountain_rent=mountain_rent,
                           agreement_value=base_rent + mountain_rent)


@app.route('/bookings/<agreement_id>/advance', methods=['POST'])
@login_required
def add_advance(agreement_id: str):
    amount = parse_amount(request.form.get('amount'))
    if amount is None or amount <= 0:
        flash('Enter a positive advance amount.')
    else:
        AgreementsApi(api_client()).add_advance(agreement_id, str(amount),
                                                request.form.get('note', '').strip())
        flash(f"Advance of {money_filter(amount)} recorded.")
    return redirect(url_for('booking_details', agreement_id=agreement_id))


@app.route('/bookings/<agreement_id>/cancel', methods=['POST'])
@login_required
def cancel_booking(agreement_id: str):
    AgreementsApi(api_client()).cancel(agreement_id)
    flash('Booking cancelled.')
    return redirect(url_for('list_bookings'))


@app.route('/bookings/<agreement_id>/assign', methods=['POST'])
@login_required
def assign_bus(agreement_id: str):
    bus_id = request.form.get('bus_id', '')
    if not bus_id:
        flash('Choose a bus to assign.')
        return redirect(url_for('booking_details', agreement_id=agreement_id))
    try:
        AgreementsApi(api_client()).assign_bus(agreement_id, bus_id)
    except BusAssignmentConflictError as exc:
        flash(exc.conflict.message or exc.message)
        for c in exc.conflict.conflicts:
            flash(f"{c.bus_vehicle_number} is booked for {c.conflicting_customer_name} "
                  f"({format_display(c.conflicting_from_date)} - {format_display(c.conflicting_to_date)}).")
    else:
        flash('Bus assigned.')
    return redirect(url_for('booking_details', agreement_id=agreement_id))


@app.route('/bookings/<agreement_id>/unassign', methods=['POST'])
@login_required
def unassign_bus(agreement_id: str):
    AgreementsApi(api_client()).unassign_bus(agreement_id, request.form.get('bus_id', ''))
    flash('Bus removed from booking.')
    return redirect(url_for('booking_details', agreement_id=agreement_id))


@app.route('/tours/all')
@login_required
def all_tours():
    mode = request.args.get('filter', 'all')
    if mode not in TOUR_FILTERS:
        mode = 'all'
    agreements = sort_by_created(AgreementsApi(api_client()).list())
    return render_template('tours_all.html', tours=filter_tours(agreements, mode),
                           counts=tour_counts(agreements), mode=mode)


@app.route('/tours/cancelled')
@login_required
def cancelled_tours_view():
    query = request.args.get('q', '')
    agreements = AgreementsApi(api_client()).list(include_cancelled=True)
    return render_template('tours_cancelled.html', tours=cancelled_tours(agreements, query), query=query)


# ---------------------------------------------------------------------------
# Fleet

def _bus_details_from_form(form):
    errors = []
    details = {
        'vehicle_number': form.get('vehicle_number', '').strip(),
        'name': form.get('name', '').strip() or None,
        'bus_type': form.get('bus_type', '').strip() or None,
        'home_city': form.get('home_city', '').strip() or None,
        'capacity': None,
        'base_rate': None,
    }
    if not details['vehicle_number']:
        errors.append('Vehicle number is required.')
    if form.get('capacity', '').strip():
        details['capacity'] = parse_positive_int(form['capacity'])
        if details['capacity'] is None:
            errors.append('Capacity must be a positive number.')
    if form.get('base_rate', '').strip():
        rate = parse_amount(form['base_rate'])
        if rate is None:
            errors.append('Base rate must be a number.')
        else:
            details['base_rate'] = float(rate)
    return details, errors


@app.route('/fleet')
@login_required
def list_fleet():
    buses = BusesApi(api_client()).list(include_inactive=True)
    buses.sort(key=lambda b: (not b.is_active, b.vehicle_number))
    return render_template('fleet.html', buses=buses,
                           active_count=sum(1 for b in buses if b.is_active))


@app.route('/fleet/add', methods=['GET', 'POST'])
@login_required
def add_bus():
    if request.method == 'POST':
        details, errors = _bus_details_from_form(request.form)
        if not errors:
            try:
                BusesApi(api_client()).create(details.pop('vehicle_number'), details.pop('name'), **details)
            except ApiError as exc:
                if exc.is_unauthorized:
                    raise
                errors.append(exc.message)
            else:
                flash('Bus added to the fleet.')
                return redirect(url_for('list_fleet'))
        for message in errors:
            flash(message)
        return render_template('bus_form.html', values=request.form, bus=None)
    return render_template('bus_form.html', values={}, bus=None)


@app.route('/fleet/<bus_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_bus(bus_id: str):
    buses = BusesApi(api_client())
    bus = next((b for b in buses.list(include_inactive=True) if b.id == bus_id), None)
    if bus is None:
        abort(404)
    if request.method == 'POST':
        details, errors = _bus_details_from_form(request.form)
        if not errors:
            try:
                buses.update(bus_id, **details)
            except ApiError as exc:
                if exc.is_unauthorized:
                    raise
                errors.append(exc.message)
            else:
                flash('Bus updated.')
                return redirect(url_for('list_fleet'))
        for message in errors:
            flash(message)
        return render_template('bus_form.html', values=request.form, bus=bus)
    values = {
        'vehicle_number': bus.vehicle_number,
        'name': bus.name or '',
        'bus_type': bus.bus_type or '',
        'capacity': bus.capacity or '',
        'base_rate': bus.base_rate if bus.base_rate is not None else '',
        'home_city': bus.home_city or '',
    }
    return render_template('bus_form.html', values=values, bus=bus)


@app.route('/fleet/<bus_id>/delete', methods=['POST'])
@login_required
def delete_bus(bus_id: str):
    # The API deactivates buses that still have assignments
    try:
        BusesApi(api_client()).delete(bus_id)
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        flash(exc.message)
    else:
        flash('Bus removed from the active fleet.')
    return redirect(url_for('list_fleet'))


@app.route('/fleet/availability')
@login_required
def availability():
    """
    Scheduling calendar.  ``view=calendar`` shows a month grid with the
    customers occupying each day; ``view=scheduler`` shows one row per bus
    over a window of days.  A failed schedule fetch renders the page with
    an error and a retry link; nothing is retried automatically.
    """
    view_mode = request.args.get('view', 'calendar')
    schedule_api = ScheduleApi(api_client())
    error = None

    if view_mode == 'scheduler':
        start = parse_date(request.args.get('start')) or date.today()
        try:
            days = int(request.args.get('days', app.config['TIMELINE_DAYS']))
        except ValueError:
            days = app.config['TIMELINE_DAYS']
        columns = timeline_dates(start, days)
        search_term = request.args.get('q', '')
        rows = []
        try:
            schedule = schedule_api.get(columns[0], columns[-1])
        except ApiError as exc:
            if exc.is_unauthorized:
                raise
            error = exc
        else:
            rows = build_bus_timeline(schedule.buses, schedule.agreements, start, len(columns), search_term)
        return render_template('availability.html', view_mode='scheduler', columns=columns, rows=rows,
                               start=start, days=len(columns), search_term=search_term, error=error,
                               previous_start=start - timedelta(days=len(columns)),
                               next_start=start + timedelta(days=len(columns)))

    month_view = MonthView.from_query(request.args.get('year'), request.args.get('month'))
    first, last = month_view.bounds()
    agreements = []
    try:
        agreements = schedule_api.get(first, last).agreements
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        error = exc
    unreadable = [a.id for a in agreements if a.from_date is None or a.to_date is None]
    if unreadable:
        logger.debug("Agreements with unreadable dates left off the calendar: {}", unreadable)
    cells = build_month(month_view.year, month_view.month, agreements)
    cap = app.config['CALENDAR_CAP']
    grid = [[render_day_cell(day, cap) for day in week] for week in weeks(cells)]
    return render_template('availability.html', view_mode='calendar', month_view=month_view, grid=grid,
                           weekday_labels=WEEKDAY_LABELS, error=error,
                           previous_view=month_view.previous(), next_view=month_view.next())


# ---------------------------------------------------------------------------
# Accounts

@app.route('/accounts/summary')
@login_required
def accounts_summary():
    """
    Ledger of all tours.  Balances come from the agreements list, the
    profit/loss figures from the accounts endpoint; the headline totals
    always cover every tour, the list below them honours the filter.
    """
    client = api_client()
    mode = request.args.get('filter', 'all')
    if mode not in LEDGER_FILTERS:
        mode = 'all'
    query = request.args.get('q', '')
    items = merge_balances(AccountsApi(client).summary(),
                           AgreementsApi(client).list(include_cancelled=True))
    shown = search_ledger(filter_ledger(items, mode), query)
    return render_template('accounts_summary.html', items=shown, totals=ledger_totals(items),
                           mode=mode, query=query)


def accounts_payload_from_form(form) -> dict:
    """
    Build the accounts upsert request from the per-bus expense form.

    Rows are numbered ``bus-0-...``, ``bus-1-...``; fuel entries and other
    expenses are repeated fields inside each row.  Blank fuel and expense
    lines are dropped.  Values stay as typed, the API parses them.
    """
    bus_expenses = []
    try:
        rows = int(form.get('row_count', '0'))
    except ValueError:
        rows = 0
    for i in range(rows):
        prefix = f"bus-{i}-"
        fuel_entries = [
            {'place': place.strip(), 'liters': liters.strip(), 'cost': cost.strip()}
            for place, liters, cost in zip(form.getlist(prefix + 'fuel_place'),
                                           form.getlist(prefix + 'fuel_liters'),
                                           form.getlist(prefix + 'fuel_cost'))
            if place.strip() or liters.strip() or cost.strip()
        ]
        other_expenses = [
            {'description': description.strip(), 'amount': amount.strip()}
            for description, amount in zip(form.getlist(prefix + 'other_description'),
                                           form.getlist(prefix + 'other_amount'))
            if description.strip() or amount.strip()
        ]
        bus_expenses.append({
            'busId': form.get(prefix + 'bus_id') or None,
            'driverBatta': form.get(prefix + 'driver_batta', '').strip() or None,
            'days': form.get(prefix + 'days', '').strip() or None,
            'startKm': form.get(prefix + 'start_km', '').strip() or None,
            'endKm': form.get(prefix + 'end_km', '').strip() or None,
            'fuelEntries': fuel_entries,
            'otherExpenses': other_expenses,
        })
    return {'busExpenses': bus_expenses}


@app.route('/accounts/<agreement_id>', methods=['GET', 'POST'])
@login_required
def agreement_accounts(agreement_id: str):
    client = api_client()
    accounts_api = AccountsApi(client)
    if request.method == 'POST':
        try:
            accounts_api.upsert(agreement_id, accounts_payload_from_form(request.form))
        except ApiError as exc:
            if exc.is_unauthorized:
                raise
            flash(exc.message)
        else:
            flash('Accounts saved.')
        return redirect(url_for('agreement_accounts', agreement_id=agreement_id))
    accounts = accounts_api.get(agreement_id)
    agreement = AgreementsApi(client).get(agreement_id)
    rows = list(accounts.bus_expenses)
    # No expenses recorded yet: offer one row per assigned bus
    blank_buses = accounts.assigned_buses if not rows else []
    return render_template('accounts_detail.html', accounts=accounts, agreement=agreement,
                           rows=rows, blank_buses=blank_buses)


# ---------------------------------------------------------------------------
# Settings and preferences

@app.route('/dashboard/settings', methods=['GET', 'POST'])
@login_required
def system_settings():
    settings_api = SettingsApi(api_client())
    if request.method == 'POST':
        key = request.form.get('key', '').strip()
        if not key:
            flash('A setting needs a key.')
        else:
            try:
                settings_api.update(key, request.form.get('value', ''),
                                    request.form.get('group', '').strip() or 'General')
            except ApiError as exc:
                if exc.is_unauthorized:
                    raise
                flash(exc.message)
            else:
                flash(f"Setting {key} saved.")
        return redirect(url_for('system_settings'))
    settings = sorted(settings_api.list(), key=lambda s: (s.group, s.key))
    return render_template('settings.html', settings=settings,
                           api_base_url=app.config['API_BASE_URL'])


@app.route('/preferences/language', methods=['POST'])
def set_language():
    language = request.form.get('language')
    if language in SUPPORTED_LANGUAGES:
        session['language'] = language
        if session.get('username'):
            set_preference(session['username'], 'language', language)
    return redirect(_safe_next(request.form.get('next') or url_for('index')))


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Heritage bus rental web front end")
    parser.add_argument('--init-db', action='store_true', help='Initialise the local preference database')
    parser.add_argument('--port', type=int, default=5000, help='Port for the development server')
    parser.add_argument('--debug', action='store_true', help='Run the development server in debug mode')
    args = parser.parse_args()
    if args.init_db:
        with app.app_context():
            init_db()
    else:
        logger.info("Using booking API at {}", app.config['API_BASE_URL'])
        app.run(debug=args.debug, port=args.port)
