from models import db, Group, GroupMembership, Exam, ChatMessage
from tests.conftest import create_group, group_id, logged_in


class TestCreateGroup:
    def test_teacher_creates_group_and_becomes_member(self, app, teacher_client):
        resp = create_group(teacher_client)
        assert resp.status_code == 302
        with app.app_context():
            g = Group.query.filter_by(name="Physics 101").one()
            assert g.description == "Waves and optics"
            assert g.password_hash.startswith("pbkdf2$")
            assert g.members_count == 1
            assert g.creator.username == "teacher"

    def test_student_cannot_create(self, student_client):
        assert create_group(student_client).status_code == 403

    def test_admin_can_create(self, app, admin_client):
        assert create_group(admin_client, name="Admin group").status_code == 302
        group_id(app, "Admin group")

    def test_name_and_password_required(self, app, teacher_client):
        resp = create_group(teacher_client, password="", name="No pass")
        assert resp.status_code == 302
        with app.app_context():
            assert Group.query.filter_by(name="No pass").first() is None

    def test_list_newest_first(self, teacher_client):
        create_group(teacher_client, name="Older Club")
        create_group(teacher_client, name="Newer Club")
        html = teacher_client.get("/groups").get_data(as_text=True)
        assert html.index("Newer Club") < html.index("Older Club") < html.index("General")


class TestJoinGroup:
    def test_wrong_password(self, app, teacher_client, student_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        resp = student_client.post(f"/groups/{gid}/join", data={"password": "nope"})
        assert resp.status_code == 403
        with app.app_context():
            assert db.session.get(Group, gid).members_count == 1

    def test_right_password_joins_once(self, app, teacher_client, student_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        resp = student_client.post(f"/groups/{gid}/join", data={"password": "grouppass"})
        assert resp.headers["Location"] == f"/groups/{gid}"
        # already a member: no second membership
        assert student_client.post(f"/groups/{gid}/join", data={"password": "grouppass"}).status_code == 302
        with app.app_context():
            assert GroupMembership.query.filter_by(group_id=gid).count() == 2
        assert student_client.get("/whoami").json["joined_groups"] == [gid]

    def test_non_member_detail_redirects_to_join(self, app, student_client):
        gid = group_id(app, "General")
        resp = student_client.get(f"/groups/{gid}")
        assert resp.headers["Location"] == f"/groups/{gid}/join"

    def test_admin_bypasses_password(self, app, teacher_client, admin_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        assert admin_client.get(f"/groups/{gid}").status_code == 200
        assert admin_client.get(f"/groups/{gid}/join").headers["Location"] == f"/groups/{gid}"


class TestManageGroup:
    def test_only_creator_or_admin_can_manage(self, app, teacher_client, student_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        student_client.post(f"/groups/{gid}/join", data={"password": "grouppass"})
        assert student_client.get(f"/groups/{gid}/exams/new").status_code == 403
        other_teacher = logged_in(app, "other", role="TEACHER")
        assert other_teacher.get(f"/groups/{gid}/exams/new").status_code == 403
        assert teacher_client.get(f"/groups/{gid}/exams/new").status_code == 200

    def test_delete_cascades(self, app, admin_client):
        gid = group_id(app, "General")
        with app.app_context():
            exam = Exam.query.filter_by(group_id=gid).first()
            db.session.add(ChatMessage(exam_id=exam.id, sender_id=None, sender_name="x", encrypted_content="eA=="))
            db.session.commit()
        assert admin_client.post(f"/groups/{gid}/delete").status_code == 302
        with app.app_context():
            assert db.session.get(Group, gid) is None
            assert Exam.query.count() == 0
            assert ChatMessage.query.count() == 0
            assert GroupMembership.query.count() == 0

    def test_member_cannot_delete(self, app, student_client):
        gid = group_id(app, "General")
        student_client.post(f"/groups/{gid}/join", data={"password": "general"})
        assert student_client.post(f"/groups/{gid}/delete").status_code == 403

    def test_forbidden_page_explains_who_can_manage(self, app, teacher_client, student_client):
        create_group(teacher_client)
        gid = group_id(app, "Physics 101")
        resp = student_client.post(f"/groups/{gid}/delete")
        assert resp.status_code == 403
        assert b"Only the creator or admin can manage this group." in resp.data


class TestConcurrentJoin:
    def test_membership_created_elsewhere_is_not_an_error(self, app, student_client, monkeypatch):
        gid = group_id(app, "General")
        student_client.post(f"/groups/{gid}/join", data={"password": "general"})
        # pretend the membership check ran before the other request committed
        monkeypatch.setattr(Group, "can_view", lambda self, user: False)

        resp = student_client.post(f"/groups/{gid}/join", data={"password": "general"})
        assert resp.status_code == 302
        assert resp.headers["Location"] == f"/groups/{gid}"
        with app.app_context():
            assert GroupMembership.query.filter_by(group_id=gid).count() == 2
