# chat.py
"""Per-exam chat: message codec, persistence and the Socket.IO channel."""
import base64
import binascii

from flask import current_app, request
from flask_login import current_user
from flask_socketio import emit, join_room, leave_room

from models import db, ChatMessage, Exam, as_utc

UNREADABLE = "[Encrypted Content]"
MAX_MESSAGE_LENGTH = 2000


class ChatError(Exception):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


# Not encryption: the payload is only Base64 so it is not stored as plain text.
def encode_message(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_message(encoded) -> str:
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, TypeError, ValueError):
        return UNREADABLE


def message_to_dict(msg: ChatMessage, client_id=None):
    data = {
        "id": msg.id,
        "sender_id": msg.sender_id,
        "sender_name": msg.sender_name,
        "exam_id": msg.exam_id,
        "encrypted_content": msg.encrypted_content,
        "content": decode_message(msg.encrypted_content),
        "timestamp": int(as_utc(msg.created_at).timestamp() * 1000),
    }
    if client_id:
        data["client_id"] = client_id
    return data


def channel_name(exam_id) -> str:
    return f"chat_{exam_id}"


def history(exam: Exam):
    rows = (
        ChatMessage.query.filter_by(exam_id=exam.id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .all()
    )
    return [message_to_dict(m) for m in rows]


def _exam_for(user, exam_id):
    try:
        exam = db.session.get(Exam, int(exam_id))
    except (TypeError, ValueError):
        exam = None
    if exam is None:
        raise ChatError("Exam not found.", 404)
    if not exam.group.can_view(user):
        raise ChatError("You are not a member of this group.", 403)
    return exam


def post_message(exam: Exam, user, content, client_id=None):
    """Store a message and broadcast it to the exam channel. Returns the payload."""
    text = (content or "").strip()
    if not text:
        raise ChatError("Message is empty.")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ChatError("Message is too long.")

    msg = ChatMessage(
        exam_id=exam.id,
        sender_id=user.id,
        sender_name=user.username,
        encrypted_content=encode_message(text),
    )
    try:
        db.session.add(msg)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception(f"Failed to store chat message for exam={exam.id}")
        raise ChatError("Could not send the message.", 500)

    payload = message_to_dict(msg, client_id=client_id)
    socketio = current_app.extensions["socketio"]
    socketio.emit("new_message", payload, to=channel_name(exam.id))
    return payload


def register_chat_events(socketio):
    @socketio.on("connect")
    def on_connect(auth=None):
        if not current_user.is_authenticated:
            return False

    @socketio.on("join")
    def on_join(data):
        try:
            exam = _exam_for(current_user, (data or {}).get("exam_id"))
        except ChatError as e:
            emit("error", {"error": e.message, "status": e.status})
            return
        join_room(channel_name(exam.id))
        current_app.logger.info(f"{current_user.username} joined {channel_name(exam.id)} sid={request.sid}")
        emit("history", {"exam_id": exam.id, "messages": history(exam)})

    @socketio.on("leave")
    def on_leave(data):
        exam_id = (data or {}).get("exam_id")
        if exam_id is not None:
            leave_room(channel_name(exam_id))

    @socketio.on("send_message")
    def on_send_message(data):
        data = data or {}
        try:
            exam = _exam_for(current_user, data.get("exam_id"))
            post_message(exam, current_user, data.get("content"), client_id=data.get("client_id"))
        except ChatError as e:
            emit("error", {"error": e.message, "status": e.status, "client_id": data.get("client_id")})
