from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin

from security import hash_secret, verify_secret, needs_rehash

db = SQLAlchemy()

ROLE_USER = "USER"
ROLE_TEACHER = "TEACHER"
ROLE_ADMIN = "ADMIN"
ROLES = (ROLE_USER, ROLE_TEACHER, ROLE_ADMIN)

QUESTION_TYPES = ("MCQ", "TF")


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(dt):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


class User(db.Model, UserMixin):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    # Synthetic <username>@studygenius.app when the user gave no address
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), default=ROLE_USER, nullable=False)
    avatar_url = db.Column(db.Text)
    is_verified = db.Column(db.Boolean, default=False, nullable=False)
    email_confirmed = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    last_login_at = db.Column(db.DateTime(timezone=True))

    memberships = db.relationship(
        "GroupMembership", back_populates="user", cascade="all, delete-orphan"
    )

    def set_password(self, password: str) -> None:
        self.password_hash = hash_secret(password)

    def check_password(self, password: str) -> bool:
        ok = verify_secret(password, self.password_hash)
        if ok and needs_rehash(self.password_hash):
            # caller commits
            self.password_hash = hash_secret(password)
        return ok

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role == ROLE_TEACHER

    @property
    def can_create_groups(self) -> bool:
        return self.role in (ROLE_TEACHER, ROLE_ADMIN)

    @property
    def joined_groups(self):
        return [m.group_id for m in self.memberships]

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "avatar": self.avatar_url,
            "is_verified": self.is_verified,
            "joined_groups": self.joined_groups,
        }


class Group(db.Model):
    __tablename__ = "study_group"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, default="", nullable=False)
    creator_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"))
    password_hash = db.Column(db.String(255), nullable=False)
    image_url = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    creator = db.relationship("User", lazy="joined")
    memberships = db.relationship(
        "GroupMembership", back_populates="group", cascade="all, delete-orphan"
    )
    exams = db.relationship(
        "Exam", back_populates="group", cascade="all, delete-orphan",
        order_by="Exam.created_at.desc()",
    )
    drafts = db.relationship("ExamDraft", back_populates="group", cascade="all, delete-orphan")

    def set_password(self, password: str) -> None:
        self.password_hash = hash_secret(password)

    def check_password(self, password: str) -> bool:
        ok = verify_secret(password, self.password_hash)
        if ok and needs_rehash(self.password_hash):
            self.password_hash = hash_secret(password)
        return ok

    @property
    def members_count(self) -> int:
        return len(self.memberships)

    def is_manager(self, user) -> bool:
        if not user or not getattr(user, "is_authenticated", False):
            return False
        return user.is_admin or self.creator_id == user.id

    def is_member(self, user) -> bool:
        if not user or not getattr(user, "is_authenticated", False):
            return False
        return any(m.user_id == user.id for m in self.memberships)

    def can_view(self, user) -> bool:
        return self.is_manager(user) or self.is_member(user)


class GroupMembership(db.Model):
    __table_args__ = (db.UniqueConstraint("user_id", "group_id", name="uq_membership"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey("study_group.id", ondelete="CASCADE"), nullable=False)
    joined_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    user = db.relationship("User", back_populates="memberships")
    group = db.relationship("Group", back_populates="memberships")


class Exam(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("study_group.id", ondelete="CASCADE"), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    creator_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    group = db.relationship("Group", back_populates="exams")
    questions = db.relationship(
        "ExamQuestion", back_populates="exam", cascade="all, delete-orphan",
        order_by="ExamQuestion.position",
    )
    attempts = db.relationship("ExamAttempt", back_populates="exam", cascade="all, delete-orphan")
    messages = db.relationship("ChatMessage", back_populates="exam", cascade="all, delete-orphan")

    @property
    def channel(self) -> str:
        return f"chat_{self.id}"


class ExamDraft(db.Model):
    """Unpublished exam being edited by one manager of a group."""
    __table_args__ = (db.UniqueConstraint("user_id", "group_id", name="uq_exam_draft"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey("study_group.id", ondelete="CASCADE"), nullable=False)
    title = db.Column(db.String(200), default="", nullable=False)
    description = db.Column(db.Text, default="", nullable=False)
    questions = db.Column(db.JSON, default=list, nullable=False)  # cleaned question dicts
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    group = db.relationship("Group", back_populates="drafts")


class ExamQuestion(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    exam_id = db.Column(db.Integer, db.ForeignKey("exam.id", ondelete="CASCADE"), nullable=False)
    position = db.Column(db.Integer, default=0, nullable=False)
    text = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, nullable=False)
    correct_answer = db.Column(db.Integer, nullable=False)  # 0-based index into options
    type = db.Column(db.String(8), default="MCQ", nullable=False)

    exam = db.relationship("Exam", back_populates="questions")

    def is_correct(self, choice) -> bool:
        return choice is not None and int(choice) == self.correct_answer


class ExamAttempt(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    exam_id = db.Column(db.Integer, db.ForeignKey("exam.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    cursor = db.Column(db.Integer, default=0, nullable=False)
    score = db.Column(db.Integer, default=0, nullable=False)
    total = db.Column(db.Integer, default=0, nullable=False)
    warnings = db.Column(db.Integer, default=0, nullable=False)
    answers = db.Column(db.JSON, default=dict, nullable=False)  # str(question_id) -> chosen index
    started_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    finished_at = db.Column(db.DateTime(timezone=True))

    exam = db.relationship("Exam", back_populates="attempts")
    user = db.relationship("User")

    @property
    def is_done(self) -> bool:
        return self.finished_at is not None

    @property
    def percent(self) -> int:
        if not self.total:
            return 0
        return round(100 * self.score / self.total)


class ChatMessage(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    exam_id = db.Column(db.Integer, db.ForeignKey("exam.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"))
    sender_name = db.Column(db.String(64), nullable=False)
    encrypted_content = db.Column(db.Text, nullable=False)  # Base64, see chat.encode_message
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    exam = db.relationship("Exam", back_populates="messages")


class VerificationCode(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    code = db.Column(db.String(6), nullable=False)
    purpose = db.Column(db.String(16), default="signup", nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True))

    user = db.relationship("User")
