# Dependencies and critical libraries (see pyproject.toml)
from flask import Flask, render_template, request, redirect, url_for, session, abort, flash, jsonify
from flask_login import LoginManager, login_user, logout_user, login_required, current_user
from flask_socketio import SocketIO
from pathlib import Path
import os, re, secrets, uuid
from models import (db, User, Group, GroupMembership, Exam, ExamDraft, ExamAttempt, ChatMessage,
                    VerificationCode, ROLE_USER, ROLE_TEACHER, ROLE_ADMIN, utcnow, as_utc)
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from functools import wraps
from datetime import timedelta
from urllib.parse import quote
from flask_migrate import Migrate
from werkzeug.datastructures import FileStorage
from storage import compress_image, upload_image
from chat import ChatError, history, post_message, register_chat_events
from exams import (MAX_OPTIONS, ExamValidationError, clean_question, create_exam, option_letter,
                   import_exams, iter_exams_from_path)
from mailer import send_verification_code

# --- App + config ---
app = Flask(__name__, instance_relative_config=True)
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "supersecretkey")

# Limit uploads (adjust if needed)
app.config["MAX_CONTENT_LENGTH"] = 8 * 1024 * 1024  # 8 MB

app.config["JSON_SORT_KEYS"] = False
app.json.sort_keys = False

app.config["TEMPLATES_AUTO_RELOAD"] = True

app.config["MIN_PASSWORD_LENGTH"] = int(os.environ.get("MIN_PASSWORD_LENGTH", 6))
app.config["REQUIRE_EMAIL_CONFIRMATION"] = os.environ.get("REQUIRE_EMAIL_CONFIRMATION", "0") == "1"
app.config["VERIFICATION_CODE_TTL"] = timedelta(minutes=10)
app.config["VERIFICATION_RESEND_COOLDOWN"] = timedelta(seconds=60)

# --- Database config (GAE-friendly, Cloud SQL-ready) ---
DATABASE_URL = os.environ.get("DATABASE_URL")
if DATABASE_URL:
    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
else:
    # Otherwise, default to SQLite.
    on_gae = os.environ.get("GAE_ENV", "").startswith("standard")
    on_cloud_run = bool(os.environ.get("K_SERVICE"))
    data_dir = Path("/tmp") if (on_gae or on_cloud_run) else Path(app.instance_path)
    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "studygenius.db"
    app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{db_path.as_posix()}"

app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {"pool_pre_ping": True}

# Initialize DB + migrations
db.init_app(app)
migrate = Migrate(app, db)

# --- Realtime chat ---
socketio = SocketIO(app)
register_chat_events(socketio)

# --- Auth setup ---
login_manager = LoginManager(app)
login_manager.login_view = "login"

@login_manager.user_loader
def load_user(user_id: str):
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None

# ---------- Account helpers ----------
SYNTHETIC_EMAIL_DOMAIN = "studygenius.app"
SELECTABLE_ROLES = (ROLE_USER, ROLE_TEACHER)

def username_to_email(username: str) -> str:
    normalized = re.sub(r"[^a-z0-9._-]", "", (username or "").strip().lower())
    return f"{normalized}@{SYNTHETIC_EMAIL_DOMAIN}"

def default_avatar(username: str) -> str:
    return f"https://api.dicebear.com/7.x/avataaars/svg?seed={quote(username)}"

def _find_user(identifier: str):
    ident = (identifier or "").strip()
    if not ident:
        return None
    user = User.query.filter(func.lower(User.username) == ident.lower()).first()
    if not user:
        user = User.query.filter(func.lower(User.email) == ident.lower()).first()
    if not user:
        user = User.query.filter_by(email=username_to_email(ident)).first()
    return user

def _username_taken(username: str, exclude_id=None) -> bool:
    qry = User.query.filter(func.lower(User.username) == username.lower())
    if exclude_id is not None:
        qry = qry.filter(User.id != exclude_id)
    return db.session.query(qry.exists()).scalar()

def _issue_verification_code(user: User) -> VerificationCode:
    code = f"{secrets.randbelow(10**6):06d}"
    row = VerificationCode(user_id=user.id, code=code, purpose="signup",
                           expires_at=utcnow() + app.config["VERIFICATION_CODE_TTL"])
    db.session.add(row)
    db.session.commit()
    send_verification_code(user.email, user.username, code)
    return row

def _resend_wait_seconds(user: User) -> int:
    last = (VerificationCode.query.filter_by(user_id=user.id, purpose="signup")
            .order_by(VerificationCode.created_at.desc()).first())
    if not last:
        return 0
    ready_at = as_utc(last.created_at) + app.config["VERIFICATION_RESEND_COOLDOWN"]
    return max(0, int((ready_at - utcnow()).total_seconds()))

def _complete_login(user: User, remember=False):
    fmt = "%b %d, %Y %H:%M"
    prev = as_utc(user.last_login_at)
    session["last_login_display"] = prev.strftime(fmt) if prev else None
    user.last_login_at = utcnow()
    db.session.commit()
    login_user(user, remember=remember)
    app.logger.info(f"Login: {user.username} ({user.role})")

# ---------- Seeding ----------
def seed_defaults():
    """Idempotent seeds for the first admin and the default study group."""
    admin = User.query.filter_by(role=ROLE_ADMIN).first()
    if not admin:
        admin = User(username="admin", email=username_to_email("admin"), role=ROLE_ADMIN,
                     is_verified=True, avatar_url=default_avatar("admin"))
        admin.set_password(os.environ.get("ADMIN_PASSWORD", "changeme"))
        db.session.add(admin)
        db.session.commit()
        app.logger.info("Seeded admin user: admin (password from ADMIN_PASSWORD).")

    if not Group.query.first():
        from sample_exams import exams as sample
        group = Group(name="General", description="Sample exams to get started.", creator_id=admin.id)
        group.set_password(os.environ.get("DEFAULT_GROUP_PASSWORD", "general"))
        db.session.add(group)
        db.session.flush()
        db.session.add(GroupMembership(user_id=admin.id, group_id=group.id))
        created, imported, _ = import_exams(group, admin, sample)
        db.session.commit()
        app.logger.info(f"Seeded group 'General' with {created} exams / {imported} questions.")

# Ensure tables + seed exactly once per worker
_init_ran = False
def _ensure_db_seeded_once():
    global _init_ran
    if _init_ran:
        return
    with app.app_context():
        try:
            db.create_all()
            seed_defaults()
        except Exception as e:
            db.session.rollback()
            app.logger.warning(f"DB init/seed skipped or failed: {e}")
    _init_ran = True
_ensure_db_seeded_once()

# ---------- Auth & guards ----------
def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return redirect(url_for('login', next=request.path))
        if not current_user.is_admin:
            abort(403)
        return fn(*args, **kwargs)
    return wrapper

def _require_manager(group):
    if not group.is_manager(current_user):
        abort(403, description="Only the creator or admin can manage this group.")

def _api_error(message, status):
    return jsonify({"error": message}), status

# ---------- Upload helpers (centralized & safe) ----------
UPLOAD_FAILED = "__UPLOAD_FAILED__"

def _running_on_app_engine() -> bool:
    # True on GAE standard; also consider Cloud Run env var
    return bool(os.getenv("GAE_ENV") == "standard" or os.getenv("K_SERVICE"))

def _save_local(data: bytes, folder: str) -> str:
    """Save under /static/uploads/<folder>/ when not running on GCP."""
    uploads_root = Path(app.static_folder) / "uploads" / folder
    uploads_root.mkdir(parents=True, exist_ok=True)
    fname = f"{uuid.uuid4().hex}.jpg"
    (uploads_root / fname).write_bytes(data)
    return url_for("static", filename=f"uploads/{folder}/{fname}")

def _upload_image(fs: FileStorage | None, folder: str) -> str | None:
    """
    Compress and store an uploaded image.
    Returns:
      - URL string on success
      - None if no file provided
      - UPLOAD_FAILED sentinel if anything went wrong (and flashes a message)
    """
    if not fs or not getattr(fs, "filename", ""):
        return None
    try:
        data = compress_image(fs.stream)
        if _running_on_app_engine():
            app.logger.info("Upload path: GCS")
            return upload_image(data, folder=folder)
        app.logger.info("Upload path: LOCAL")
        return _save_local(data, folder)
    except Exception as e:
        app.logger.exception(f"Image upload failed for folder={folder}")
        flash(f"Image upload failed: {e}", "danger")
        return UPLOAD_FAILED

# ---------- Template helpers ----------
@app.context_processor
def inject_helpers():
    return {
        "option_letter": option_letter,
        "MAX_OPTIONS": MAX_OPTIONS,
        "ROLE_ADMIN": ROLE_ADMIN,
        "ROLE_TEACHER": ROLE_TEACHER,
    }

# ---------- Routes ----------

# Dashboard: require login
@app.route('/')
@login_required
def index():
    attempts = (ExamAttempt.query.filter_by(user_id=current_user.id)
                .filter(ExamAttempt.finished_at.isnot(None))
                .order_by(ExamAttempt.finished_at.desc()).all())
    return render_template(
        "dashboard.html",
        joined_count=len(current_user.memberships),
        finished_count=len(attempts),
        recent_attempts=attempts[:5],
        last_login=session.get("last_login_display"),
    )

# Login/Logout
@app.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'GET':
        if current_user.is_authenticated:
            return redirect(url_for('index'))
        return render_template("login.html")

    identifier = (request.form.get('username') or '').strip()
    password = request.form.get('password') or ''
    if not identifier or not password.strip():
        flash("Please enter your username and password.", "danger")
        return render_template("login.html"), 400

    user = _find_user(identifier)
    if not user or not user.check_password(password):
        db.session.rollback()
        flash("Invalid credentials", "danger")
        return render_template("login.html"), 401

    if not user.email_confirmed:
        db.session.commit()
        session["pending_user_id"] = user.id
        flash("Please confirm your email first.", "warning")
        return redirect(url_for('verify'))

    _complete_login(user, remember=bool(request.form.get('remember')))
    flash("Welcome back!", "success")

    next_url = request.args.get('next')
    if not next_url or not next_url.startswith('/') or next_url.startswith('//'):
        next_url = url_for('index')
    return redirect(next_url)


@app.route('/logout')
@login_required
def logout():
    logout_user()
    session.pop("last_login_display", None)
    flash("Signed out", "info")
    return redirect(url_for('login'))

@app.route('/register', methods=['GET', 'POST'])
def register():
    if request.method == 'GET':
        if current_user.is_authenticated:
            return redirect(url_for('index'))
        return render_template("register.html", roles=SELECTABLE_ROLES)

    username = (request.form.get('username') or '').strip()
    password = request.form.get('password') or ''
    email = (request.form.get('email') or '').strip().lower()
    role = (request.form.get('role') or ROLE_USER).strip().upper()
    if role not in SELECTABLE_ROLES:
        role = ROLE_USER

    def fail(msg):
        flash(msg, "danger")
        return render_template("register.html", roles=SELECTABLE_ROLES), 400

    if not username or not password:
        return fail("Username and password are required.")
    if len(username) > 64:
        return fail("Username is too long.")
    min_len = app.config["MIN_PASSWORD_LENGTH"]
    if len(password) < min_len:
        return fail(f"Password must be at least {min_len} characters.")
    if _username_taken(username):
        return fail("Username already exists. Please choose another one.")
    if email and ("@" not in email or User.query.filter_by(email=email).first()):
        return fail("That email is invalid or already registered.")
    synthetic = username_to_email(username)
    if not email and User.query.filter_by(email=synthetic).first():
        return fail("Username already exists. Please choose another one.")

    avatar_url = _upload_image(request.files.get('avatar'), "avatars")
    if avatar_url == UPLOAD_FAILED:
        return render_template("register.html", roles=SELECTABLE_ROLES), 400

    needs_confirmation = bool(email) and app.config["REQUIRE_EMAIL_CONFIRMATION"]
    user = User(
        username=username,
        email=email or synthetic,
        role=role,
        avatar_url=avatar_url or default_avatar(username),
        is_verified=False,
        email_confirmed=not needs_confirmation,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    app.logger.info(f"Registered {username} as {role}")

    if needs_confirmation:
        _issue_verification_code(user)
        session["pending_user_id"] = user.id
        flash(f"We sent a 6-digit code to {email}.", "info")
        return redirect(url_for('verify'))

    _complete_login(user)
    flash("Account created. Welcome!", "success")
    return redirect(url_for('index'))

@app.route('/verify', methods=['GET', 'POST'])
def verify():
    uid = session.get("pending_user_id")
    user = db.session.get(User, uid) if uid else None
    if not user:
        return redirect(url_for('register'))
    if user.email_confirmed:
        session.pop("pending_user_id", None)
        return redirect(url_for('login'))

    if request.method == 'POST':
        code = (request.form.get('code') or '').strip()
        row = (VerificationCode.query
               .filter_by(user_id=user.id, code=code, purpose="signup", used_at=None)
               .order_by(VerificationCode.created_at.desc()).first())
        if not row or as_utc(row.expires_at) < utcnow():
            flash("Invalid code. Please check your email and try again.", "danger")
            return render_template("verify.html", user=user, wait=_resend_wait_seconds(user)), 400
        row.used_at = utcnow()
        user.email_confirmed = True
        db.session.commit()
        session.pop("pending_user_id", None)
        _complete_login(user)
        flash("Email confirmed. Welcome!", "success")
        return redirect(url_for('index'))

    return render_template("verify.html", user=user, wait=_resend_wait_seconds(user))

@app.route('/verify/resend', methods=['POST'])
def verify_resend():
    uid = session.get("pending_user_id")
    user = db.session.get(User, uid) if uid else None
    if not user or user.email_confirmed:
        return redirect(url_for('login'))
    wait = _resend_wait_seconds(user)
    if wait > 0:
        flash(f"Resend code in {wait}s", "warning")
    else:
        _issue_verification_code(user)
        flash("Code has been resent to your email.", "info")
    return redirect(url_for('verify'))

@app.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    if request.method == 'POST':
        username = (request.form.get('username') or '').strip()
        if not username:
            flash("Username is required.", "danger")
            return render_template("profile.html"), 400
        if _username_taken(username, exclude_id=current_user.id):
            flash("Username already exists. Please choose another one.", "danger")
            return render_template("profile.html"), 400

        avatar_url = _upload_image(request.files.get('avatar'), "avatars")
        if avatar_url == UPLOAD_FAILED:
            return render_template("profile.html"), 400

        current_user.username = username
        if request.form.get('remove_avatar'):
            current_user.avatar_url = default_avatar(username)
        if avatar_url:
            current_user.avatar_url = avatar_url
        db.session.commit()
        flash("Profile updated successfully!", "success")
        return redirect(url_for('profile'))

    return render_template("profile.html")

# -------- Groups ----------
@app.route('/groups')
@login_required
def groups_list():
    groups = Group.query.order_by(Group.created_at.desc(), Group.id.desc()).all()
    return render_template("groups.html", groups=groups)

@app.route('/groups/new', methods=['POST'])
@login_required
def groups_new():
    if not current_user.can_create_groups:
        abort(403)
    name = (request.form.get('name') or '').strip()
    password = request.form.get('password') or ''
    if not name or not password:
        flash("Group name and password are required.", "danger")
        return redirect(url_for('groups_list'))

    image_url = _upload_image(request.files.get('image'), "groups")
    if image_url == UPLOAD_FAILED:
        return redirect(url_for('groups_list'))

    group = Group(name=name, description=(request.form.get('description') or '').strip(),
                  creator_id=current_user.id, image_url=image_url)
    group.set_password(password)
    try:
        db.session.add(group)
        db.session.flush()
        db.session.add(GroupMembership(user_id=current_user.id, group_id=group.id))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Group creation failed")
        flash(f"Failed to create group: {e}", "danger")
        return redirect(url_for('groups_list'))
    flash("Group created", "success")
    return redirect(url_for('groups_list'))

@app.route('/groups/<int:gid>/join', methods=['GET', 'POST'])
@login_required
def groups_join(gid):
    group = Group.query.get_or_404(gid)
    # Admins and creators bypass the password check
    if group.can_view(current_user):
        return redirect(url_for('groups_show', gid=gid))

    if request.method == 'POST':
        password = request.form.get('password') or ''
        if not password or not group.check_password(password):
            db.session.rollback()
            flash("Incorrect group password.", "danger")
            return render_template("group_join.html", group=group), 403
        try:
            db.session.add(GroupMembership(user_id=current_user.id, group_id=group.id))
            db.session.commit()
        except IntegrityError:
            # joined meanwhile from another request
            db.session.rollback()
            return redirect(url_for('groups_show', gid=gid))
        flash(f"Joined {group.name}", "success")
        return redirect(url_for('groups_show', gid=gid))

    return render_template("group_join.html", group=group)

@app.route('/groups/<int:gid>')
@login_required
def groups_show(gid):
    group = Group.query.get_or_404(gid)
    if not group.can_view(current_user):
        return redirect(url_for('groups_join', gid=gid))
    return render_template("group_detail.html", group=group, is_manager=group.is_manager(current_user))

@app.route('/groups/<int:gid>/delete', methods=['POST'])
@login_required
def groups_delete(gid):
    group = Group.query.get_or_404(gid)
    _require_manager(group)
    db.session.delete(group)
    db.session.commit()
    flash("Group deleted", "warning")
    return redirect(url_for('groups_list'))

# -------- Exams: creation ----------
def _draft_for(group, create=True) -> ExamDraft:
    """The current user's unpublished exam for this group."""
    draft = ExamDraft.query.filter_by(user_id=current_user.id, group_id=group.id).first()
    if not draft:
        draft = ExamDraft(user_id=current_user.id, group_id=group.id, title="", description="", questions=[])
        if create:
            db.session.add(draft)
    return draft

@app.route('/groups/<int:gid>/exams/new', methods=['GET', 'POST'])
@login_required
def exams_new(gid):
    group = Group.query.get_or_404(gid)
    _require_manager(group)

    draft = _draft_for(group, create=request.method == 'POST')

    if request.method == 'POST':
        action = request.form.get('action', 'add_question')
        draft.title = (request.form.get('title') or draft.title or '').strip()
        draft.description = (request.form.get('description') or draft.description or '').strip()

        if action == 'add_question':
            try:
                q = clean_question(
                    request.form.get('text'),
                    request.form.getlist('option'),
                    request.form.get('correct'),
                    request.form.get('type', 'MCQ'),
                )
            except ExamValidationError as e:
                flash(str(e), "danger")
            else:
                # reassign so the JSON column is marked dirty
                draft.questions = [*draft.questions, q]
            db.session.commit()
            return redirect(url_for('exams_new', gid=gid))

        if action == 'remove_question':
            idx = request.form.get('index', type=int)
            if idx is not None and 0 <= idx < len(draft.questions):
                draft.questions = [q for i, q in enumerate(draft.questions) if i != idx]
            db.session.commit()
            return redirect(url_for('exams_new', gid=gid))

        if action == 'publish':
            db.session.commit()
            try:
                create_exam(group, current_user, draft.title, draft.questions,
                            description=draft.description)
                db.session.delete(draft)
                db.session.commit()
            except ExamValidationError as e:
                db.session.rollback()
                flash(str(e), "danger")
                return render_template("exam_form.html", group=group, draft=draft), 400
            except Exception:
                db.session.rollback()
                app.logger.exception(f"Failed to save exam for group={gid}")
                flash("Failed to save the exam.", "danger")
                return render_template("exam_form.html", group=group, draft=draft), 500
            flash("Exam published!", "success")
            return redirect(url_for('groups_show', gid=gid))

        if action == 'discard':
            ExamDraft.query.filter_by(user_id=current_user.id, group_id=gid).delete()
            db.session.commit()
            return redirect(url_for('groups_show', gid=gid))

        abort(400)

    return render_template("exam_form.html", group=group, draft=draft)

@app.route('/exams/<int:eid>/delete', methods=['POST'])
@login_required
def exams_delete(eid):
    exam = Exam.query.get_or_404(eid)
    _require_manager(exam.group)
    gid = exam.group_id
    db.session.delete(exam)
    db.session.commit()
    flash("Exam deleted", "warning")
    return redirect(url_for('groups_show', gid=gid))

# -------- Exams: taking ----------
def _own_attempt(aid) -> ExamAttempt:
    attempt = ExamAttempt.query.get_or_404(aid)
    if attempt.user_id != current_user.id:
        abort(403)
    return attempt

@app.route('/exams/<int:eid>/start', methods=['GET', 'POST'])
@login_required
def exams_start(eid):
    exam = Exam.query.get_or_404(eid)
    if not exam.group.can_view(current_user):
        return redirect(url_for('groups_join', gid=exam.group_id))
    if not exam.questions:
        flash("This exam has no questions yet.", "warning")
        return redirect(url_for('groups_show', gid=exam.group_id))

    attempt = ExamAttempt(exam_id=exam.id, user_id=current_user.id, total=len(exam.questions), answers={})
    db.session.add(attempt)
    db.session.commit()
    return redirect(url_for('attempt_take', aid=attempt.id))

@app.route('/attempts/<int:aid>', methods=['GET', 'POST'])
@login_required
def attempt_take(aid):
    attempt = _own_attempt(aid)
    if attempt.is_done:
        return redirect(url_for('attempt_result', aid=aid))

    questions = attempt.exam.questions
    if attempt.cursor >= len(questions):
        attempt.finished_at = utcnow()
        db.session.commit()
        return redirect(url_for('attempt_result', aid=aid))
    q = questions[attempt.cursor]

    if request.method == 'POST':
        choice = request.form.get('answer', type=int)
        if choice is None or not 0 <= choice < len(q.options):
            flash("Pick one of the options.", "warning")
            return redirect(url_for('attempt_take', aid=aid))

        if q.is_correct(choice):
            attempt.score += 1
        attempt.answers = {**(attempt.answers or {}), str(q.id): choice}
        attempt.cursor += 1
        if attempt.cursor >= len(questions):
            attempt.finished_at = utcnow()
        db.session.commit()
        if attempt.is_done:
            return redirect(url_for('attempt_result', aid=aid))
        return redirect(url_for('attempt_take', aid=aid))

    return render_template(
        "quiz.html",
        attempt=attempt,
        exam=attempt.exam,
        q=q,
        number=attempt.cursor + 1,
        total=len(questions),
        messages=history(attempt.exam),
    )

@app.route('/attempts/<int:aid>/result')
@login_required
def attempt_result(aid):
    attempt = _own_attempt(aid)
    if not attempt.is_done:
        return redirect(url_for('attempt_take', aid=aid))
    return render_template("summary.html", attempt=attempt, exam=attempt.exam)

@app.route('/api/attempts/<int:aid>/warnings', methods=['POST'])
@login_required
def attempt_warning(aid):
    attempt = db.session.get(ExamAttempt, aid)
    if not attempt:
        return _api_error("Attempt not found.", 404)
    if attempt.user_id != current_user.id:
        return _api_error("Not your attempt.", 403)
    if attempt.is_done:
        return jsonify({"warnings": attempt.warnings, "counted": False})
    attempt.warnings += 1
    db.session.commit()
    app.logger.warning(f"Focus lost: user={current_user.username} attempt={aid} warnings={attempt.warnings}")
    return jsonify({"warnings": attempt.warnings, "counted": True})

# -------- Chat (HTTP side; realtime side lives in chat.py) ----------
@app.route('/api/exams/<int:eid>/messages', methods=['GET', 'POST'])
@login_required
def exam_messages(eid):
    exam = db.session.get(Exam, eid)
    if not exam:
        return _api_error("Exam not found.", 404)
    if not exam.group.can_view(current_user):
        return _api_error("You are not a member of this group.", 403)

    if request.method == 'GET':
        return jsonify({"exam_id": exam.id, "channel": exam.channel, "messages": history(exam)})

    data = request.get_json(silent=True) or request.form
    try:
        payload = post_message(exam, current_user, data.get('content'), client_id=data.get('client_id'))
    except ChatError as e:
        return _api_error(e.message, e.status)
    return jsonify(payload), 201

# -------- Admin ----------
@app.route('/admin')
@admin_required
def admin_home():
    stats = {
        "users": User.query.count(),
        "groups": Group.query.count(),
        "exams": Exam.query.count(),
        "messages": ChatMessage.query.count(),
    }
    users = User.query.order_by(User.id.desc()).all()
    return render_template("admin/users.html", stats=stats, users=users)

@app.route('/admin/users/<int:uid>/role', methods=['POST'])
@admin_required
def admin_users_role(uid):
    u = User.query.get_or_404(uid)
    if u.is_admin:
        flash("Admin accounts cannot be changed here.", "warning")
        return redirect(url_for('admin_home'))
    u.role = ROLE_USER if u.role == ROLE_TEACHER else ROLE_TEACHER
    db.session.commit()
    app.logger.info(f"{current_user.username} set role of {u.username} to {u.role}")
    flash(f"{u.username} is now {u.role}", "success")
    return redirect(url_for('admin_home'))

@app.route('/admin/users/<int:uid>/verify', methods=['POST'])
@admin_required
def admin_users_verify(uid):
    u = User.query.get_or_404(uid)
    if u.is_admin:
        flash("Admin accounts cannot be changed here.", "warning")
        return redirect(url_for('admin_home'))
    u.is_verified = not u.is_verified
    db.session.commit()
    flash(f"{u.username} {'verified' if u.is_verified else 'unverified'}", "success")
    return redirect(url_for('admin_home'))

@app.route('/admin/users/<int:uid>/delete', methods=['POST'])
@admin_required
def admin_users_delete(uid):
    u = User.query.get_or_404(uid)
    if current_user.id == u.id:
        flash("You cannot delete yourself.", "warning")
        return redirect(url_for('admin_home'))
    if u.is_admin and User.query.filter_by(role=ROLE_ADMIN).count() <= 1:
        flash("Cannot delete the last admin.", "warning")
        return redirect(url_for('admin_home'))

    ExamAttempt.query.filter_by(user_id=u.id).delete()
    VerificationCode.query.filter_by(user_id=u.id).delete()
    ExamDraft.query.filter_by(user_id=u.id).delete()
    ChatMessage.query.filter_by(sender_id=u.id).update({"sender_id": None})
    Group.query.filter_by(creator_id=u.id).update({"creator_id": None})
    Exam.query.filter_by(creator_id=u.id).update({"creator_id": None})
    db.session.delete(u)
    db.session.commit()
    flash("User deleted", "warning")
    return redirect(url_for('admin_home'))

@app.route('/whoami')
def whoami():
    if not current_user.is_authenticated:
        return {"auth": False}
    return {"auth": True, **current_user.to_dict()}

# ---- One-off CLI: import exams into a group ----
import click

@app.cli.command("import-exam")
@click.argument("path", type=str)
@click.option("--group", "group_name", required=True, help="Name of the group that receives the exams.")
@click.option("--skip-duplicates", is_flag=True, help="Skip exams whose title already exists in the group.")
def import_exam_cli(path, group_name, skip_duplicates):
    """
    Import exams from a JSON file or a Python module with `exams = [...]`.
    Usage:
      flask --app main import-exam ./sample_exams.py --group General
    """
    items = iter_exams_from_path(path)
    group = Group.query.filter_by(name=group_name).first()
    if not group:
        raise click.ClickException(f"Group not found: {group_name}")
    created, imported, skipped = import_exams(group, group.creator, items, skip_duplicates=skip_duplicates)
    db.session.commit()
    click.echo(f"Exams: {created}, Questions: {imported}, Skipped: {skipped}")

if __name__ == '__main__':
    port = int(os.environ.get("PORT", 8080))
    socketio.run(app, host="0.0.0.0", port=port)
